"""
Parsing of SendGrid contact export files.

Exports arrive gzip-compressed. SendGrid writes newline-delimited JSON (one
contact object per line); CSV with a header row is accepted as well for files
coming from other sources. Records are separated by LF or CRLF only. A bad
record is skipped and counted, it never fails the batch.
"""

import csv
import gzip
import io
import json
import re
import zlib
from typing import Any
from urllib.parse import urlparse

from app.infrastructure.observability.logging import get_logger
from app.models.domain.contact_domain import ContactRecord, ParseResult
from app.services.errors import DecompressFailed, ParseError

logger = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

FORMAT_NDJSON = "ndjson"
FORMAT_CSV = "csv"


def is_gzip(payload: bytes) -> bool:
    """Check for the gzip magic number in the first two bytes."""
    return payload[:2] == GZIP_MAGIC


def decompress_payload(payload: bytes) -> bytes:
    """
    Gunzip a payload when it carries the gzip signature.

    Payloads without the signature are returned unchanged.

    Raises:
        DecompressFailed: If a gzip-signed payload is corrupt or truncated
    """
    if not is_gzip(payload):
        logger.debug("Export payload is not gzip-compressed", size_bytes=len(payload))
        return payload

    try:
        data = gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as e:
        logger.error("Failed to decompress export payload", error=str(e), size_bytes=len(payload))
        raise DecompressFailed(f"Failed to decompress export file: {e}") from e

    logger.debug(
        "Export payload decompressed", compressed_bytes=len(payload), decompressed_bytes=len(data)
    )
    return data


_LINE_BREAK = re.compile(r"\r?\n")


def split_lines(text: str) -> list[str]:
    """Split on LF or CRLF only; other Unicode line separators stay inside values."""
    return _LINE_BREAK.split(text)


def _first_content_line(text: str) -> str:
    for line in split_lines(text):
        if line.strip():
            return line.strip()
    return ""


def detect_format(text: str, source_url: str | None = None) -> str:
    """
    Decide whether an export body is CSV or NDJSON.

    A ``.csv`` download path wins. Otherwise the first non-blank line decides:
    a JSON object means NDJSON, a comma-separated header means CSV.
    """
    if source_url and urlparse(source_url).path.lower().endswith((".csv", ".csv.gz")):
        return FORMAT_CSV

    first_line = _first_content_line(text)
    if first_line.startswith("{"):
        return FORMAT_NDJSON
    if "," in first_line and "\n" in text:
        return FORMAT_CSV
    return FORMAT_NDJSON


def _is_serialized_list(tags: str) -> bool:
    return '""' in tags or (len(tags) >= 2 and tags.startswith('"') and tags.endswith('"'))


def _split_tag_text(tags: str) -> tuple[str, list[str]]:
    cleaned = tags
    if cleaned.startswith('"""'):
        cleaned = cleaned[3:]
    if cleaned.endswith('"""'):
        cleaned = cleaned[:-3]

    tag_list = []
    for tag in cleaned.split('","'):
        tag = tag.strip().strip('"').strip()
        if tag:
            tag_list.append(tag)
    return cleaned, tag_list


def normalize_tags(record: ContactRecord) -> ContactRecord:
    """
    Normalize the ``tags`` field of a parsed record in place.

    - Serialized list text (nested quoting such as ""a"",""b"") keeps
      the cleaned string in ``tags`` and the split list in ``tags_array``.
    - A JSON list is kept in ``tags_array`` and joined for display in ``tags``.
    - Plain strings are left untouched.
    """
    tags = record.get("tags")
    if not tags:
        return record

    if isinstance(tags, str) and _is_serialized_list(tags):
        cleaned, tag_list = _split_tag_text(tags)
        record["tags"] = cleaned
        record["tags_array"] = tag_list
    elif isinstance(tags, list):
        tag_list = [str(tag) for tag in tags]
        record["tags_array"] = tag_list
        record["tags"] = ", ".join(tag_list)

    return record


def parse_ndjson(text: str) -> ParseResult:
    """Parse newline-delimited JSON, one contact object per non-blank line."""
    result = ParseResult(format=FORMAT_NDJSON)

    for line_number, line in enumerate(split_lines(text), start=1):
        if not line.strip():
            continue

        try:
            record: Any = json.loads(line)
        except ValueError as e:
            result.skipped += 1
            logger.warning("Skipping malformed export line", line_number=line_number, error=str(e))
            continue

        if not isinstance(record, dict):
            result.skipped += 1
            logger.warning(
                "Skipping non-object export line",
                line_number=line_number,
                value_type=type(record).__name__,
            )
            continue

        result.contacts.append(normalize_tags(record))

    return result


def parse_csv(text: str) -> ParseResult:
    """
    Parse a CSV export with a header row.

    The whole body goes through one reader, so quoted values may span lines.
    Header names are lower-cased and stripped of quotes. Blank rows are
    ignored; rows whose column count differs from the header are skipped and
    counted.
    """
    result = ParseResult(format=FORMAT_CSV)
    reader = csv.reader(io.StringIO(text, newline=""))
    headers: list[str] | None = None

    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            result.skipped += 1
            logger.warning("Skipping unreadable CSV row", line_number=reader.line_num, error=str(e))
            continue

        values = [value.strip() for value in row]
        if not any(values):
            continue

        if headers is None:
            headers = [value.lower().replace('"', "").replace("'", "") for value in values]
            continue

        if len(values) != len(headers):
            result.skipped += 1
            logger.warning(
                "Skipping CSV row with column count mismatch",
                line_number=reader.line_num,
                expected=len(headers),
                actual=len(values),
            )
            continue

        result.contacts.append(normalize_tags(dict(zip(headers, values))))

    if not result.contacts and not result.skipped:
        logger.warning("CSV export contains no data rows", has_header=headers is not None)
    return result


def parse_export(payload: bytes, source_url: str | None = None) -> ParseResult:
    """
    Decompress and parse a downloaded export file.

    Args:
        payload: Raw downloaded bytes, gzip-compressed or not
        source_url: Download URL, used as a format hint

    Returns:
        ParseResult: Contacts in file order plus the skipped-line count

    Raises:
        DecompressFailed: If a gzip-signed payload cannot be decompressed
        ParseError: If the payload is not UTF-8 text
    """
    data = decompress_payload(payload)

    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.error("Export payload is not valid UTF-8", error=str(e))
        raise ParseError(f"Export file is not valid UTF-8 text: {e}") from e

    export_format = detect_format(text, source_url)
    result = parse_csv(text) if export_format == FORMAT_CSV else parse_ndjson(text)

    logger.info(
        "Export file parsed",
        format=result.format,
        contacts=len(result.contacts),
        skipped=result.skipped,
        without_email=result.unkeyed_count,
    )
    return result
