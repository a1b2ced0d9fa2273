"""
Generador de embeddings para búsqueda semántica.

Usa gemini-embedding-001 de Google; la dimensión de salida se toma
de settings (768 por defecto).
"""

from typing import Optional

from google import genai
from google.genai import types
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from vinculo.config import get_settings
from vinculo.errors import EmbeddingUnavailableError, InvalidInputError

logger = structlog.get_logger()


class EmbeddingGenerator:
    """
    Genera embeddings usando la API de Gemini.

    Los embeddings se usan para:
    - Vectorizar el resumen de cada entidad (EmbeddingProcessor)
    - Vectorizar las queries de texto libre (SimilaritySearchEngine)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        dimensions: Optional[int] = None,
    ):
        settings = get_settings()
        api_key = api_key or settings.gemini_api_key

        if not api_key:
            raise ValueError("GEMINI_API_KEY es requerida para embeddings.")

        self.client = genai.Client(api_key=api_key)
        # https://ai.google.dev/gemini-api/docs/embeddings
        self.model_name = model_name or settings.embedding_model
        self.output_dim = dimensions or settings.embedding_dimensions
        logger.info("Embedding generator inicializado", model=self.model_name, dim=self.output_dim)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _embed(self, text: str) -> list[float]:
        response = await self.client.aio.models.embed_content(
            model=self.model_name,
            contents=text,
            config=types.EmbedContentConfig(output_dimensionality=self.output_dim),
        )
        return list(response.embeddings[0].values)

    async def embed_text(self, text: str) -> list[float]:
        """
        Genera el embedding de un texto.

        Args:
            text: Texto a vectorizar (resumen de entidad o query)

        Returns:
            Vector de output_dim dimensiones

        Raises:
            InvalidInputError: texto vacío
            EmbeddingUnavailableError: la API falló tras los reintentos o
                devolvió un vector vacío o de otra dimensión
        """
        if not text or not text.strip():
            raise InvalidInputError("No se puede vectorizar un texto vacío")

        try:
            embedding = await self._embed(text)
        except Exception as e:
            logger.error(
                "Error generando embedding",
                text=text[:50],
                error=str(e),
            )
            raise EmbeddingUnavailableError(f"Gemini no devolvió embedding: {e}") from e

        if not embedding:
            raise EmbeddingUnavailableError("Gemini devolvió un embedding vacío")

        if len(embedding) != self.output_dim:
            raise EmbeddingUnavailableError(
                f"Dimensión inesperada: {len(embedding)} (esperada {self.output_dim})"
            )

        logger.debug(
            "Embedding generado",
            text_length=len(text),
            embedding_dim=len(embedding),
        )

        return embedding
