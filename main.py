#!/usr/bin/env python3
import uvicorn
import os
import sys

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from UploadServer import config


def main():
    ssl = {}
    if config.SSL_CERTFILE and config.SSL_KEYFILE:
        ssl = {"ssl_certfile": config.SSL_CERTFILE, "ssl_keyfile": config.SSL_KEYFILE}
    scheme = "https" if ssl else "http"
    print(f"[*] Starting LiveUploader on {scheme}://{config.SERVER_HOST}:{config.SERVER_PORT}")
    uvicorn.run("UploadServer.main:app", host=config.SERVER_HOST, port=config.SERVER_PORT, reload=False, **ssl)


if __name__ == "__main__":
    main()
