#!/usr/bin/env python3
"""
Upload a folder of scanned tickets and extract them in one go.

Creates a session, uploads every image / PDF / ZIP in the folder, optionally
auto-orients the images and runs batch extraction over them.

Usage:
    python batch_upload.py ./scans --api-url http://127.0.0.1:8000 --orient
"""
import argparse
import requests
from pathlib import Path

API_BASE_URL = "http://127.0.0.1:8000"
UPLOAD_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff", ".tif",
    ".heic", ".heif", ".avif", ".pdf", ".zip",
}
CHUNK_SIZE = 50  # Server accepts at most MAX_UPLOAD_FILES per request


def find_scans(folder: Path) -> list[Path]:
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in UPLOAD_EXTENSIONS)


def create_session(api_url: str) -> str:
    response = requests.post(f"{api_url}/api/sessions", timeout=30)
    response.raise_for_status()
    return response.json()["sessionId"]


def upload_scans(api_url: str, session_id: str, paths: list[Path]) -> list[dict]:
    """Upload files in chunks and return the stored files reported by the server"""
    stored = []
    for start in range(0, len(paths), CHUNK_SIZE):
        chunk = paths[start:start + CHUNK_SIZE]
        handles = [open(p, "rb") for p in chunk]
        try:
            files = [("files", (p.name, f)) for p, f in zip(chunk, handles)]
            response = requests.post(f"{api_url}/api/sessions/{session_id}/upload", files=files, timeout=300)
        finally:
            for f in handles:
                f.close()
        response.raise_for_status()
        stored.extend(response.json()["files"])
    return stored


def orient_session(api_url: str, session_id: str) -> list[dict]:
    response = requests.post(f"{api_url}/api/sessions/{session_id}/orient-all", timeout=600)
    response.raise_for_status()
    return response.json()["results"]


def image_urls_for_extraction(stored: list[dict], orient_results: list[dict] | None = None) -> list[str]:
    """Image URLs to extract, preferring the corrected copy of rotated images"""
    replacements = {r["url"]: r["newUrl"] for r in (orient_results or []) if r.get("newUrl")}
    return [
        replacements.get(f["url"], f["url"])
        for f in stored
        if f["mimeType"].startswith("image/")
    ]


def extract_tickets(api_url: str, session_id: str, image_urls: list[str]) -> dict:
    response = requests.post(
        f"{api_url}/api/extract-batch",
        json={"imageUrls": image_urls, "sessionId": session_id},
        timeout=1800,
    )
    response.raise_for_status()
    return response.json()


def print_summary(result: dict):
    print()
    for ticket in result["tickets"]:
        icon = "✅" if ticket["status"] == "pending" else "⚠️ "
        number = ticket["fields"]["ticketNumber"]["value"] or "?"
        print(f"{icon} {ticket['imageUrl']}: ticket #{number} ({ticket['overallConfidence']}% confidence, {ticket['status']})")
    for error in result["errors"]:
        print(f"❌ {error['imageUrl']}: {error['error']}")
    print()
    print(f"Tickets: {len(result['tickets'])}  Errors: {len(result['errors'])}")


def main():
    parser = argparse.ArgumentParser(description="Upload a folder of ticket scans and extract them")
    parser.add_argument("folder", help="Folder containing images, PDFs or ZIP archives")
    parser.add_argument("--api-url", default=API_BASE_URL, help=f"API base URL (default: {API_BASE_URL})")
    parser.add_argument("--orient", action="store_true", help="Auto-orient images before extraction")
    args = parser.parse_args()

    paths = find_scans(Path(args.folder))
    if not paths:
        print(f"⚠️  No supported files found in {args.folder}")
        return

    session_id = create_session(args.api_url)
    print(f"Session: {session_id}")

    stored = upload_scans(args.api_url, session_id, paths)
    print(f"Uploaded {len(paths)} files, {len(stored)} stored")

    orient_results = None
    if args.orient:
        orient_results = orient_session(args.api_url, session_id)
        rotated = sum(1 for r in orient_results if r["rotated"])
        print(f"Oriented {len(orient_results)} images, {rotated} rotated")

    image_urls = image_urls_for_extraction(stored, orient_results)
    if not image_urls:
        print("⚠️  No images to extract (PDFs must be converted to page images first)")
        return

    print_summary(extract_tickets(args.api_url, session_id, image_urls))


if __name__ == "__main__":
    main()
