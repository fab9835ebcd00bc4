"""Archive transcoder: scrubs every text entry of a ZIP archive."""

import io
import time
import zipfile
import zlib
from typing import Dict, Optional, Tuple

from secureapi.core.artifacts import (
    CONFIG_FILENAME,
    IGNORE_FILENAME,
    REPORT_FILENAME,
    ArtifactGenerator,
)
from secureapi.core.exceptions import ArchiveFormatError, EntryDecodeError
from secureapi.core.models import ScanResult
from secureapi.core.patterns import PatternCatalog
from secureapi.core.rewriter import RewriteEngine
from secureapi.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ENTRY_BYTES = 2 * 1024 * 1024

# Entries with these endings are copied without being opened
BINARY_EXTENSIONS = (
    ".tgz", ".tar", ".gz", ".zip", ".rar", ".7z", ".jar", ".war",
    ".exe", ".dll", ".so", ".dylib", ".bin",
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp", ".bmp",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".mp3", ".mp4", ".wav", ".avi", ".mov", ".wmv",
    ".ttf", ".otf", ".woff", ".woff2", ".eot",
    ".pyc", ".pyo", ".class", ".o", ".obj",
    ".sqlite", ".db", ".sqlite3",
    ".pack", ".idx",
)

# Errors zipfile raises for corrupt, encrypted or unsupported content
_CONTAINER_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    RuntimeError,
    NotImplementedError,
    EOFError,
    zlib.error,
    OSError,
    ValueError,
)

_ARTIFACT_MODE = 0o644 << 16


def is_binary_name(name: str) -> bool:
    return name.lower().endswith(BINARY_EXTENSIONS)


def decode_text(name: str, data: bytes) -> str:
    """
    Decode an entry as UTF-8 text.

    Raises:
        EntryDecodeError: If the bytes look binary or are not valid UTF-8
    """
    if b"\x00" in data:
        raise EntryDecodeError(name, "contains NUL bytes")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EntryDecodeError(name, str(e))


def common_root(names) -> str:
    """Directory prefix shared by every entry, or "" when there is none."""
    names = [n for n in names if not n.startswith("__MACOSX/")]
    if not names or any("/" not in n for n in names):
        return ""
    tops = {n.split("/", 1)[0] for n in names}
    if len(tops) != 1:
        return ""
    return f"{tops.pop()}/"


def _clone_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    clone = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    clone.compress_type = info.compress_type
    clone.external_attr = info.external_attr
    clone.create_system = info.create_system
    clone.comment = info.comment
    return clone


def _new_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=time.localtime(time.time())[:6])
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = _ARTIFACT_MODE
    return info


class ArchiveTranscoder:
    """
    Reads a ZIP archive, scrubs its text entries and writes a new archive.

    Directories are recreated empty, binary or undecodable entries are
    copied byte for byte, and text entries go through a RewriteEngine that
    lives for exactly one ``process`` call.
    """

    def __init__(
        self,
        catalog: PatternCatalog,
        generator: Optional[ArtifactGenerator] = None,
        max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES,
    ):
        self.catalog = catalog
        self.generator = generator or ArtifactGenerator()
        self.max_entry_bytes = max_entry_bytes

    def process(self, archive: bytes) -> Tuple[bytes, ScanResult]:
        """
        Scrub an archive.

        Args:
            archive: Raw ZIP bytes

        Returns:
            Tuple of (new archive bytes, scan result)

        Raises:
            ArchiveFormatError: If the archive cannot be read
        """
        engine = RewriteEngine(self.catalog)
        result = ScanResult()
        output = io.BytesIO()

        try:
            source = zipfile.ZipFile(io.BytesIO(archive))
        except _CONTAINER_ERRORS as e:
            raise ArchiveFormatError(
                "Could not process the uploaded .zip file. It may be corrupt or in an invalid format.",
                details={"reason": str(e)},
            )

        with source, zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as target:
            infos = source.infolist()
            root = common_root(info.filename for info in infos)
            paths = {
                "config": f"{root}{CONFIG_FILENAME}",
                "report": f"{root}{REPORT_FILENAME}",
                "ignore": f"{root}{IGNORE_FILENAME}",
            }
            reserved: Dict[str, Tuple[zipfile.ZipInfo, bytes]] = {}

            try:
                for info in infos:
                    if info.is_dir():
                        target.writestr(_clone_info(info), b"")
                        continue
                    data = source.read(info)
                    if info.filename in paths.values():
                        reserved[info.filename] = (info, data)
                        continue
                    target.writestr(_clone_info(info), self._transcode(engine, info, data, result))
            except _CONTAINER_ERRORS as e:
                raise ArchiveFormatError(
                    "Could not process the uploaded .zip file. It may be corrupt or in an invalid format.",
                    details={"reason": str(e)},
                )

            if result.has_findings:
                self._write_artifacts(target, paths, reserved, result)

            for info, data in reserved.values():
                target.writestr(_clone_info(info), data)

        result.archive = output.getvalue()
        logger.info(
            f"Scrubbed archive: {result.files_scanned} scanned, {result.files_modified} modified, "
            f"{result.files_skipped} copied verbatim, {len(result.refactors)} refactored, "
            f"{len(result.redactions)} redacted"
        )
        return result.archive, result

    def _transcode(
        self,
        engine: RewriteEngine,
        info: zipfile.ZipInfo,
        data: bytes,
        result: ScanResult,
    ) -> bytes:
        name = info.filename
        if is_binary_name(name) or len(data) > self.max_entry_bytes:
            result.files_skipped += 1
            return data

        try:
            text = decode_text(name, data)
        except EntryDecodeError as e:
            logger.debug(f"Copying {name} verbatim: {e.reason}")
            result.files_skipped += 1
            return data

        rewritten = engine.rewrite(text, name)
        result.files_scanned += 1
        result.refactors.extend(rewritten.refactors)
        result.redactions.extend(rewritten.redactions)

        if not rewritten.changed:
            return data
        result.files_modified += 1
        return rewritten.text.encode("utf-8")

    def _write_artifacts(
        self,
        target: zipfile.ZipFile,
        paths: Dict[str, str],
        reserved: Dict[str, Tuple[zipfile.ZipInfo, bytes]],
        result: ScanResult,
    ) -> None:
        existing_ignore = reserved.get(paths["ignore"])
        artifacts = self.generator.build(
            result.refactors,
            result.redactions,
            existing_ignore[1].decode("utf-8", errors="surrogateescape") if existing_ignore else None,
        )

        config = artifacts.config.encode("utf-8")
        existing_config = reserved.get(paths["config"])
        if existing_config:
            previous = existing_config[1]
            if previous and not previous.endswith(b"\n"):
                previous += b"\n"
            config = previous + b"\n" + config

        bodies = {
            paths["config"]: config,
            paths["report"]: artifacts.report.encode("utf-8"),
            paths["ignore"]: artifacts.ignore.encode("utf-8", errors="surrogateescape"),
        }
        for path, body in bodies.items():
            previous_entry = reserved.pop(path, None)
            info = _clone_info(previous_entry[0]) if previous_entry else _new_info(path)
            target.writestr(info, body)
