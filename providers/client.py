"""Gemini API client utilities.

Provides a mixin for lazy Gemini client initialization. The same mixin
serves both backends the google-genai SDK supports: the Gemini Developer
API (``GOOGLE_API_KEY``) and Vertex AI (``GOOGLE_CLOUD_PROJECT`` plus
``GOOGLE_CLOUD_LOCATION``, selected with ``use_vertex``).
"""

import os
from typing import TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from google import genai

load_dotenv()

DEFAULT_VERTEX_LOCATION = "us-central1"


class GeminiClientMixin:
    """Mixin providing a lazily created google-genai client.

    Classes using the mixin may set ``use_vertex`` before first access.

    Example:
        class MyProvider(GeminiClientMixin, Provider):
            def invoke(self, model, input, options):
                response = self.client.models.generate_content(...)
    """

    _client: "genai.Client | None" = None
    use_vertex: bool = False

    @property
    def client(self) -> "genai.Client":
        """Get or create the google-genai client.

        Returns:
            Configured genai.Client instance.

        Raises:
            ValueError: If the credentials for the selected backend are missing.
        """
        if self._client is None:
            from google import genai

            if self.use_vertex:
                project = os.getenv("GOOGLE_CLOUD_PROJECT")
                if not project:
                    raise ValueError("GOOGLE_CLOUD_PROJECT not set (required for Vertex AI)")
                location = os.getenv("GOOGLE_CLOUD_LOCATION", DEFAULT_VERTEX_LOCATION)
                self._client = genai.Client(vertexai=True, project=project, location=location)
            else:
                api_key = os.getenv("GOOGLE_API_KEY")
                if not api_key:
                    raise ValueError(
                        "GOOGLE_API_KEY not set. Get one at https://aistudio.google.com/app/apikey"
                    )
                self._client = genai.Client(api_key=api_key)
        return self._client

    def reset_client(self) -> None:
        """Drop the cached client so the next access reconnects."""
        self._client = None
