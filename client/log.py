# client/log.py
import logging, logging.handlers, os, tempfile

log = logging.getLogger("client")
if not log.handlers:
	try_paths = []
	if os.getenv("CLIENT_LOG"):
		try_paths.append(os.getenv("CLIENT_LOG"))
	try_paths.append(os.path.join(os.getcwd(), "liveuploader_client.log"))
	try_paths.append(os.path.join(tempfile.gettempdir(), "liveuploader_client.log"))
	_handler = None
	for _p in try_paths:
		try:
			_handler = logging.handlers.RotatingFileHandler(_p, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
			break
		except OSError:
			continue
	if _handler is None:
		_handler = logging.StreamHandler()
	_formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
	_handler.setFormatter(_formatter)
	log.addHandler(_handler)
	log.setLevel(logging.DEBUG)
	log.propagate = False


def get_logger(name: str) -> logging.Logger:
	return log.getChild(name)
