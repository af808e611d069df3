from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger("postproxy.secrets")


def get_secret_from_manager(secret_name: str, project_id: Optional[str] = None) -> str:
    """
    Fetch a secret from Google Cloud Secret Manager.

    Args:
        secret_name: Name of the secret (e.g., "xai-api-key")
        project_id: GCP project ID. If None, uses GCP_PROJECT / GOOGLE_CLOUD_PROJECT.

    Returns:
        The latest version of the secret, stripped of surrounding whitespace.

    Raises:
        ImportError: google-cloud-secret-manager is not installed.
        ValueError: No project id could be determined.
    """
    try:
        from google.cloud import secretmanager
    except ImportError:
        logger.warning(
            "google-cloud-secret-manager not installed. "
            "Install it with: pip install 'postproxy[gcp]'"
        )
        raise

    if project_id is None:
        project_id = os.environ.get("GCP_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT")
        if not project_id:
            raise ValueError(
                "Project ID not specified. Set GCP_PROJECT_ID, GCP_PROJECT or GOOGLE_CLOUD_PROJECT."
            )

    client = secretmanager.SecretManagerServiceClient()
    name = f"projects/{project_id}/secrets/{secret_name}/versions/latest"

    logger.info("Fetching secret from Secret Manager: %s", secret_name)
    try:
        response = client.access_secret_version(request={"name": name})
    except Exception as e:
        logger.error("Failed to retrieve secret %s: %s", secret_name, e)
        raise

    return response.payload.data.decode("UTF-8").strip()


def should_use_secret_manager() -> bool:
    """True if USE_SECRET_MANAGER is set to "true", "1" or "yes" (case-insensitive)."""
    return os.environ.get("USE_SECRET_MANAGER", "").lower() in ("true", "1", "yes")
