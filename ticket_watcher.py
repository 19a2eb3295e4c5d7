#!/usr/bin/env python3
"""
Ticket Folder Watcher - Automatic Upload

Watches a folder for new ticket scans and uploads each one into a single
session opened at start-up, so a scanner can drop files straight into the
review queue.

Usage:
    python ticket_watcher.py --watch-folder ./tickets-incoming
"""

import argparse
import json
import time
import requests
from datetime import datetime
from pathlib import Path
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

API_BASE_URL = "http://127.0.0.1:8000"
WATCHED_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff", ".tif",
    ".heic", ".heif", ".avif", ".pdf", ".zip",
}


class TicketHandler(FileSystemEventHandler):
    """Uploads new scan files into a session"""

    def __init__(self, api_url, session_id, watch_folder, processed_folder, failed_folder, settle_seconds=1.0):
        self.api_url = api_url
        self.session_id = session_id
        self.watch_folder = Path(watch_folder)
        self.processed_folder = Path(processed_folder)
        self.failed_folder = Path(failed_folder)
        self.settle_seconds = settle_seconds
        self.seen_files = set()

        self.processed_folder.mkdir(parents=True, exist_ok=True)
        self.failed_folder.mkdir(parents=True, exist_ok=True)

    def on_created(self, event):
        if event.is_directory:
            return

        file_path = Path(event.src_path)
        if file_path.suffix.lower() not in WATCHED_EXTENSIONS or file_path in self.seen_files:
            return

        # Give the scanner time to finish writing
        time.sleep(self.settle_seconds)
        if not file_path.exists():
            return

        self.seen_files.add(file_path)
        self.upload_ticket(file_path)

    def upload_ticket(self, file_path: Path):
        print(f"📄 New scan: {file_path.name} ({file_path.stat().st_size:,} bytes)")
        try:
            with open(file_path, "rb") as f:
                response = requests.post(
                    f"{self.api_url}/api/sessions/{self.session_id}/upload",
                    files={"files": (file_path.name, f)},
                    timeout=120,
                )
        except requests.exceptions.RequestException as e:
            self.handle_error(file_path, str(e))
            return

        if response.status_code == 200:
            self.handle_success(file_path, response.json()["files"])
        else:
            self.handle_error(file_path, f"API returned {response.status_code}: {response.text[:200]}")

    def handle_success(self, file_path: Path, stored: list):
        if stored:
            print(f"   ✅ Stored {len(stored)} file(s): {', '.join(f['name'] for f in stored)}")
        else:
            print("   ⚠️  Nothing stored (unsupported content)")
        dest_path = self.processed_folder / file_path.name
        file_path.rename(dest_path)
        self.log_processing(file_path.name, "uploaded", stored, dest_path)

    def handle_error(self, file_path: Path, error_msg: str):
        print(f"   ❌ Upload failed: {error_msg}")
        dest_path = self.failed_folder / file_path.name
        file_path.rename(dest_path)
        self.log_processing(file_path.name, "failed", [], dest_path, error=error_msg)

    def log_processing(self, filename: str, status: str, stored: list, dest_path: Path, error: str | None = None):
        """Append an entry to processing_log.json next to the watch folder"""
        log_file = self.watch_folder.parent / "processing_log.json"
        log_data = json.loads(log_file.read_text()) if log_file.exists() else []
        log_data.append({
            "timestamp": datetime.now().isoformat(),
            "filename": filename,
            "session_id": self.session_id,
            "status": status,
            "stored": [f["url"] for f in stored],
            "error": error,
            "destination": str(dest_path),
        })
        log_file.write_text(json.dumps(log_data, indent=2))


def main():
    parser = argparse.ArgumentParser(description="Watch a folder and upload new ticket scans")
    parser.add_argument("--watch-folder", default="./tickets-incoming", help="Folder to watch (default: ./tickets-incoming)")
    parser.add_argument("--processed-folder", default="./tickets-processed", help="Folder for uploaded scans")
    parser.add_argument("--failed-folder", default="./tickets-failed", help="Folder for scans that failed to upload")
    parser.add_argument("--session-id", default=None, help="Existing session to upload into (default: create one)")
    parser.add_argument("--api-url", default=API_BASE_URL, help=f"API base URL (default: {API_BASE_URL})")
    args = parser.parse_args()

    session_id = args.session_id
    if not session_id:
        response = requests.post(f"{args.api_url}/api/sessions", timeout=30)
        response.raise_for_status()
        session_id = response.json()["sessionId"]

    watch_folder = Path(args.watch_folder)
    watch_folder.mkdir(parents=True, exist_ok=True)

    event_handler = TicketHandler(args.api_url, session_id, watch_folder, args.processed_folder, args.failed_folder)
    observer = Observer()
    observer.schedule(event_handler, str(watch_folder), recursive=False)
    observer.start()

    print("=" * 70)
    print("🔍 TICKET WATCHER")
    print("=" * 70)
    print(f"Watching: {watch_folder.absolute()}")
    print(f"Session: {session_id}")
    print(f"API: {args.api_url}")
    print("Press Ctrl+C to stop")
    print("=" * 70)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n👋 Stopping watcher...")
        observer.stop()

    observer.join()


if __name__ == "__main__":
    main()
