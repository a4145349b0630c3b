"""Stream the affected serials file and match it against the serial index."""

import gzip
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional

from serial_audit.models import CertificateResource, ScanResult
from serial_audit.polling import raise_if_cancelled
from serial_audit.serial import SerialParseError, normalize_serial

logger = logging.getLogger(__name__)

SERIAL_PREFIX = "serial "


class RevocationFileError(Exception):
    """Raised when the affected serials file cannot be read to the end."""


def iter_serial_lines(path: Path) -> Iterator[str]:
    """
    Yield the lines of the affected serials file one at a time.

    The file is in the order of a gigabyte, so it is only ever read forward.
    Files ending in ``.gz`` are decompressed on the fly. Bytes that are not
    ASCII are replaced rather than rejected, so such a line fails the usual
    line checks instead of the whole read.

    Raises:
        RevocationFileError: If the file cannot be opened or read
    """
    try:
        if path.suffix == ".gz":
            handle = gzip.open(path, "rt", encoding="ascii", errors="replace")
        else:
            handle = open(path, "r", encoding="ascii", errors="replace")
    except OSError as e:
        raise RevocationFileError(f"cannot open affected serials file {path}: {e}") from e

    with handle:
        try:
            for line in handle:
                yield line.rstrip("\r\n")
        except (OSError, EOFError) as e:
            raise RevocationFileError(f"error reading affected serials file {path}: {e}") from e


def scan_revocation_file(
    path: Path,
    index: Mapping[str, CertificateResource],
    progress_every: int = 10_000_000,
    cancel: Optional[threading.Event] = None,
    cancel_check_every: int = 10_000,
) -> ScanResult:
    """
    Find the indexed certificates whose serial appears in the affected serials file.

    Each meaningful line has the form ``serial <hex>``. Other lines and
    unparsable serials are logged and counted, never fatal.

    Args:
        path: Path to the affected serials file
        index: Canonical serial key to Certificate
        progress_every: Log a progress line every this many lines
        cancel: Checked every ``cancel_check_every`` lines
        cancel_check_every: Lines between cancellation checks

    Returns:
        ScanResult keyed by the serial exactly as written in the file

    Raises:
        RevocationFileError: On any read error; a partial scan is never returned
        AuditCancelled: If ``cancel`` is set during the scan
    """
    affected: Dict[str, CertificateResource] = {}
    result = ScanResult(affected=affected)

    for line in iter_serial_lines(path):
        if result.lines_read % cancel_check_every == 0:
            raise_if_cancelled(cancel)
        result.lines_read += 1
        if progress_every and result.lines_read % progress_every == 0:
            logger.info(f"Scanned {result.lines_read} lines, {len(affected)} affected so far")

        if not line.strip():
            continue
        if not line.startswith(SERIAL_PREFIX):
            logger.warning(f"Failed to parse line in affected serials file, does not start with {SERIAL_PREFIX!r}: {line}")
            result.malformed_lines += 1
            continue

        serial = line[len(SERIAL_PREFIX):].strip()
        try:
            key = normalize_serial(serial)
        except SerialParseError as e:
            logger.warning(f"Failed to parse serial number in affected serials file: {e} (line: {line})")
            result.malformed_lines += 1
            continue

        cert = index.get(key)
        if cert is None:
            continue
        logger.debug(f"Certificate {cert.key} matches affected serial {serial}")
        affected[serial] = cert

    logger.debug(f"Finished scanning {result.lines_read} lines ({result.malformed_lines} malformed)")
    return result
