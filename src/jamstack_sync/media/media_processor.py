"""Media processor for preparing item images for the repository."""

import hashlib
import logging
import shutil
from pathlib import Path
from urllib.parse import unquote, urljoin, urlparse

import httpx
from lxml import etree
from lxml import html as lxml_html

from jamstack_sync.content import ContentSource
from jamstack_sync.exceptions import CodecUnsupported
from schemas.content_item import ContentItem
from schemas.outcomes import MediaAsset, MediaResult
from schemas.settings import SyncSettings

from .encoders import EncoderChain

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30.0
REPOSITORY_IMAGE_ROOT = "static/images"
SITE_IMAGE_ROOT = "/images"
FEATURED_BASENAME = "featured"


def image_directory(item_id: int) -> str:
    """Repository directory holding every image of an item."""
    return f"{REPOSITORY_IMAGE_ROOT}/{item_id}"


class MediaProcessor:
    """Downloads item images and re-encodes them for the static site.

    Images are downloaded into a per-item scratch directory, re-encoded into
    each configured format (WebP then AVIF by default) and returned as
    repository files plus a mapping from the original URL to the path the
    site will serve. Only images hosted under settings.site_url are
    processed; a failing image is logged and skipped.

    Example:
        with MediaProcessor(settings, source) as media:
            try:
                result = media.process_content_images(item)
            finally:
                media.cleanup(item.id)
    """

    def __init__(
        self,
        settings: SyncSettings,
        content_source: ContentSource,
        encoders: EncoderChain | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the media processor.

        Args:
            settings: Sync settings (site URL, temp dir, formats, quality)
            content_source: Source used to resolve thumbnail references
            encoders: Encoder chain; defaults to Pillow then PyMuPDF
            http_client: Optional HTTP client for downloading media.
                         If not provided, one will be created internally.
        """
        self.settings = settings
        self.content_source = content_source
        self.encoders = encoders or EncoderChain()
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
        return self._client

    def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "MediaProcessor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def item_temp_dir(self, item_id: int) -> Path:
        return self.settings.temp_dir / str(item_id)

    def is_local(self, url: str) -> bool:
        """Whether an image URL belongs to the content source's own site."""
        if url.startswith("/") and not url.startswith("//"):
            return True
        site_url = self.settings.site_url.rstrip("/")
        if not site_url:
            return False
        return url == site_url or url.startswith(site_url + "/")

    def discover_images(self, body: str) -> list[str]:
        """Extract the local image URLs referenced by an HTML body.

        Args:
            body: HTML markup

        Returns:
            Deduplicated image URLs in document order; external images are omitted
        """
        if not body or not body.strip():
            return []

        try:
            fragment = lxml_html.fragment_fromstring(body, create_parent="div")
        except etree.ParserError as e:
            logger.warning(f"Could not parse body for images: {e}")
            return []

        urls: list[str] = []
        for img in fragment.iter("img"):
            src = (img.get("src") or "").strip()
            if not src or src in urls:
                continue
            if not self.is_local(src):
                logger.debug(f"Skipping external image {src}")
                continue
            urls.append(src)
        return urls

    def fetch_and_transform(
        self,
        item_id: int,
        url: str,
        basename: str | None = None,
    ) -> MediaAsset:
        """Download one image and encode it into every configured format.

        Formats no backend supports are skipped. If every encoding fails the
        original bytes are kept under the original extension.

        Args:
            item_id: Item the image belongs to (scopes temp and repository paths)
            url: Image URL
            basename: Output file stem; defaults to the stem of the URL's filename

        Returns:
            MediaAsset whose final_relative_path uses the first format produced

        Raises:
            httpx.HTTPStatusError: If the download returns an error status
            httpx.RequestError: If the download fails at the network level
        """
        scope = self.item_temp_dir(item_id)
        scope.mkdir(parents=True, exist_ok=True)

        filename = self._filename_for(url)
        local_path = scope / filename
        self._download_file(self._absolute_url(url), local_path)
        data = local_path.read_bytes()

        stem = basename or Path(filename).stem
        repo_dir = image_directory(item_id)

        variants: dict[str, bytes] = {}
        for image_format in self.settings.image_formats:
            try:
                encoded = self.encoders.encode(
                    data, image_format, self.settings.image_quality
                )
            except CodecUnsupported as e:
                logger.info(f"Skipping {image_format} for {url}: {e}")
                continue
            except Exception as e:
                logger.warning(f"Failed to encode {url} as {image_format}: {e}")
                continue

            (scope / f"{stem}.{image_format}").write_bytes(encoded)
            variants[image_format] = encoded

        if variants:
            files = {
                f"{repo_dir}/{stem}.{image_format}": encoded
                for image_format, encoded in variants.items()
            }
            chosen = f"{stem}.{next(iter(variants))}"
        else:
            chosen = f"{stem}{Path(filename).suffix}"
            logger.warning(f"No encoding succeeded for {url}, keeping original as {chosen}")
            files = {f"{repo_dir}/{chosen}": data}

        return MediaAsset(
            original_url=url,
            local_temp_path=local_path,
            encoded_variants=variants,
            final_relative_path=f"{SITE_IMAGE_ROOT}/{item_id}/{chosen}",
            files=files,
        )

    def process_featured_image(self, item: ContentItem) -> MediaResult:
        """Prepare the item's featured image under the fixed basename "featured"."""
        if not item.thumbnail_ref:
            logger.debug(f"Item {item.id} has no featured image")
            return MediaResult()

        url = self.content_source.get_attachment_url(item.thumbnail_ref)
        if not url:
            logger.warning(
                f"Featured image {item.thumbnail_ref} of item {item.id} has no URL"
            )
            return MediaResult()

        try:
            asset = self.fetch_and_transform(item.id, url, basename=FEATURED_BASENAME)
        except Exception as e:
            logger.warning(f"Failed to process featured image for item {item.id}: {e}")
            return MediaResult()

        return MediaResult(files=asset.files, featured_path=asset.final_relative_path)

    def process_content_images(self, item: ContentItem) -> MediaResult:
        """Prepare every local image embedded in the item's body."""
        urls = self.discover_images(item.body)
        if not urls:
            return MediaResult()

        logger.info(f"Processing {len(urls)} images for item {item.id}")
        result = MediaResult()
        taken = {FEATURED_BASENAME}

        for url in urls:
            stem = self._unique_stem(url, taken)
            try:
                asset = self.fetch_and_transform(item.id, url, basename=stem)
            except httpx.HTTPStatusError as e:
                logger.warning(
                    f"Failed to download {url} for item {item.id}: "
                    f"HTTP {e.response.status_code}"
                )
                continue
            except Exception as e:
                logger.warning(f"Failed to process {url} for item {item.id}: {e}")
                continue

            result.files.update(asset.files)
            result.mapping[url] = asset.final_relative_path

        logger.info(
            f"Prepared {len(result.mapping)}/{len(urls)} images for item {item.id}"
        )
        return result

    def cleanup(self, item_id: int) -> None:
        """Remove the item's scratch directory and everything in it."""
        scope = self.item_temp_dir(item_id)
        if not scope.exists():
            return
        try:
            shutil.rmtree(scope)
        except OSError as e:
            logger.warning(f"Failed to clean up {scope}: {e}")
            return
        logger.debug(f"Cleaned up temporary files for item {item_id}")

    def _absolute_url(self, url: str) -> str:
        if url.startswith("/") and not url.startswith("//"):
            return urljoin(self.settings.site_url.rstrip("/") + "/", url.lstrip("/"))
        return url

    def _filename_for(self, url: str) -> str:
        name = Path(unquote(urlparse(url).path)).name
        return name or "image"

    def _unique_stem(self, url: str, taken: set[str]) -> str:
        """Stem of the URL's filename, suffixed with a URL hash if already used."""
        stem = Path(self._filename_for(url)).stem
        if stem in taken:
            stem = f"{stem}-{hashlib.sha1(url.encode()).hexdigest()[:8]}"
        taken.add(stem)
        return stem

    def _download_file(self, url: str, destination: Path) -> None:
        """Download a file from URL to local path.

        Raises:
            httpx.HTTPStatusError: If the request returns an error status
            httpx.RequestError: If there's a network error
        """
        client = self._get_client()
        response = client.get(url)
        response.raise_for_status()

        destination.write_bytes(response.content)
