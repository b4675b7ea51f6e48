import hashlib
import json
import logging
import time

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from tqdm import tqdm

from orders.store import get_document_store

logger = logging.getLogger(__name__)

MENU_COLLECTION = 'menu'


# --- Cloudinary Service ---

class CloudinaryService:
    """
    A service class for the Cloudinary image API (menu photography).
    """
    timeout = 30

    def __init__(self):
        self.cloud_name = settings.CLOUDINARY_CLOUD_NAME
        self.api_key = settings.CLOUDINARY_API_KEY
        self.api_secret = settings.CLOUDINARY_API_SECRET
        self.upload_preset = settings.CLOUDINARY_UPLOAD_PRESET

        if not all([self.cloud_name, self.api_key, self.api_secret]):
            raise ImproperlyConfigured("Cloudinary settings are not configured properly.")

        self.base_url = f"{settings.CLOUDINARY_API_BASE}/{self.cloud_name}/image"

    def _signature(self, params):
        """
        Cloudinary request signature: the sorted params joined as a query
        string, followed by the API secret, SHA-1 hashed.
        """
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def upload(self, image_data: str) -> str:
        """
        Uploads an image (a base64 data URI or a remote URL) through the
        configured upload preset and returns its secure URL.
        """
        response = requests.post(f"{self.base_url}/upload", data={
            "file": image_data,
            "upload_preset": self.upload_preset,
        }, timeout=self.timeout)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.error(f"Cloudinary upload failed: {e.response.status_code} - {e.response.text}")
            raise

        secure_url = response.json()["secure_url"]
        logger.info(f"Upload successful: {secure_url}")
        return secure_url

    def delete(self, public_id: str) -> bool:
        """
        Deletes an image by public id. Returns True when Cloudinary reports "ok".
        """
        params = {"public_id": public_id, "timestamp": int(time.time())}
        payload = dict(params, api_key=self.api_key, signature=self._signature(params))

        response = requests.post(f"{self.base_url}/destroy", data=payload, timeout=self.timeout)
        response.raise_for_status()
        result = response.json().get("result")

        if result == "ok":
            logger.info(f"Deleted Cloudinary image {public_id}.")
            return True
        logger.warning(f"Cloudinary did not delete {public_id}: {result}")
        return False


# --- Menu upload ---

def load_menu_file(path):
    """
    Reads a menu file: a JSON list of {"category": str, "items": [...]}.
    """
    with open(path, 'r', encoding='utf-8') as f:
        menu = json.load(f)

    if not isinstance(menu, list):
        raise ValueError("Menu file must contain a JSON list of categories.")
    for entry in menu:
        if not isinstance(entry, dict) or not entry.get('category'):
            raise ValueError(f"Menu entry without a category: {entry!r}")
        if not isinstance(entry.get('items', []), list):
            raise ValueError(f"Items of '{entry['category']}' must be a list.")
    return menu


def upload_menu(menu, store=None, progress=True) -> int:
    """
    Writes each category to menu/<category>, replacing what was there.
    Returns the number of categories written.
    """
    store = store or get_document_store()
    for entry in tqdm(menu, desc="Uploading menu", disable=not progress):
        store.set(MENU_COLLECTION, entry['category'], {
            "category": entry['category'],
            "items": entry.get('items', []),
        })
        logger.info(f"Uploaded: {entry['category']}")
    return len(menu)
