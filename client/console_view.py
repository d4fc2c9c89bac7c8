# client/console_view.py
import sys
from typing import Any, Dict, List

from colorama import Fore, Style

brightgreen = Style.BRIGHT + Fore.GREEN
brightyellow = Style.BRIGHT + Fore.YELLOW
brightred = Style.BRIGHT + Fore.RED
reset = Style.RESET_ALL


class ConsoleView:
	"""Terminal stand-in for the upload page: status line, modal notices, listing table."""

	def __init__(self, stream=None):
		self.stream = stream or sys.stdout
		self.modal_open = False
		self.status = 0
		self.files: List[Dict[str, Any]] = []

	def _write(self, line: str) -> None:
		self.stream.write(line + "\n")
		self.stream.flush()

	def open_modal(self) -> None:
		self.modal_open = True
		self._write(brightyellow + "[*] Uploading..." + reset)

	def close_modal(self) -> None:
		self.modal_open = False
		self._write(brightgreen + "[+] Upload finished" + reset)

	def update_status(self, percent: int) -> None:
		self.status = percent
		self._write(f"[*] progress: {percent}%")

	def update_current_files(self, files: List[Dict[str, Any]]) -> None:
		self.files = list(files)
		if not self.files:
			self._write("(no files uploaded yet)")
			return
		width = max(len(f.get("file", "")) for f in self.files)
		self._write(f"{'FILE'.ljust(width)}  {'SIZE':>9}  {'OWNER':<12}  LAST MODIFIED")
		for f in self.files:
			self._write(f"{f.get('file', '').ljust(width)}  {f.get('size', ''):>9}  {f.get('owner', ''):<12}  {f.get('lastModified', '')}")
