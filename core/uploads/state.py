import time
from dataclasses import dataclass, asdict, field
from typing import Optional, Literal, Dict, Any

STATUS = Literal["receiving", "done", "error", "aborted"]


@dataclass
class UploadSession:
	session_id: str
	destination_directory: str
	throttle_window_ms: int = 2000
	created_at: float = field(default_factory=time.time)

	def __post_init__(self) -> None:
		if self.throttle_window_ms < 0:
			raise ValueError("throttle_window_ms must be >= 0")


@dataclass
class FileTransfer:
	"""Server side record of one file inside an upload request."""
	filename: str
	local_path: str
	bytes_processed: int = 0
	last_emission_at: Optional[float] = None  # clock ms of the last progress event sent
	emissions: int = 0
	status: STATUS = "receiving"
	error: Optional[str] = None

	def observe(self, total_bytes: int) -> None:
		# running totals only ever grow
		if total_bytes > self.bytes_processed:
			self.bytes_processed = total_bytes

	def record_emission(self, now: float) -> None:
		self.last_emission_at = now
		self.emissions += 1

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


@dataclass(frozen=True)
class ProgressEvent:
	filename: str
	processed_already: int

	def to_payload(self) -> Dict[str, Any]:
		# wire shape consumed by the client
		return {"processedAlready": self.processed_already, "filename": self.filename}
