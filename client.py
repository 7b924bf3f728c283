import requests
import base64
import os
import sys
import argparse
import logging
import mimetypes

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Override with the STUDIO_BASE_URL environment variable.
DEFAULT_BASE_URL = os.getenv("STUDIO_BASE_URL", "http://127.0.0.1:5010")

REQUEST_TIMEOUT = 120  # seconds; image models are slow


class StudioClientError(RuntimeError):
    """Raised when the studio API returns an error or an unusable response."""


class StudioClient:
    """Thin client for the studio's JSON image API."""

    def __init__(self, base_url=DEFAULT_BASE_URL, timeout=REQUEST_TIMEOUT, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path, **kwargs):
        url = f"{self.base_url}/api/v1{path}"
        logger.info("Sending request to %s", url)
        try:
            response = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StudioClientError(f"Request to {url} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            raise StudioClientError(f"Unexpected non-JSON response ({response.status_code})")

        if response.status_code != 200:
            message = (payload.get("error") or {}).get("message") if isinstance(payload, dict) else None
            raise StudioClientError(message or f"Request failed with status {response.status_code}")

        try:
            entry = payload["data"][0]
            return base64.b64decode(entry["b64_json"]), entry.get("mime_type") or ""
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise StudioClientError("Response did not contain an image") from e

    def generate(self, prompt):
        """Return ``(image_bytes, mime_type)`` for a newly generated image."""
        return self._post("/images/generations", json={"prompt": prompt})

    def edit(self, image_path, prompt):
        """Upload ``image_path`` with ``prompt`` and return the edited image."""
        mime_type = mimetypes.guess_type(image_path)[0] or "application/octet-stream"
        with open(image_path, "rb") as f:
            files = {"image": (os.path.basename(image_path), f, mime_type)}
            return self._post("/images/edits", files=files, data={"prompt": prompt})


def _default_output(mime_type):
    extension = mimetypes.guess_extension(mime_type or "") or ".png"
    if extension == ".jpe":
        extension = ".jpg"
    return f"studio_output{extension}"


def build_parser():
    parser = argparse.ArgumentParser(description="AI Image Studio command-line client")
    parser.add_argument('--base-url', default=DEFAULT_BASE_URL, help='Base URL of the running studio')
    subparsers = parser.add_subparsers(dest='command', required=True)

    generate_parser = subparsers.add_parser('generate', help='Generate an image from a prompt')
    generate_parser.add_argument('prompt')
    generate_parser.add_argument('-o', '--output', help='Where to write the image')

    edit_parser = subparsers.add_parser('edit', help='Edit an existing image with a prompt')
    edit_parser.add_argument('image')
    edit_parser.add_argument('prompt')
    edit_parser.add_argument('-o', '--output', help='Where to write the image')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    client = StudioClient(args.base_url)

    try:
        if args.command == 'generate':
            image_bytes, mime_type = client.generate(args.prompt)
        else:
            image_bytes, mime_type = client.edit(args.image, args.prompt)
    except (StudioClientError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output = args.output or _default_output(mime_type)
    with open(output, "wb") as f:
        f.write(image_bytes)
    print(f"Saved {len(image_bytes)} bytes to {output}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
