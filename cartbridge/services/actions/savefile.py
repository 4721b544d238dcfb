"""``savefile`` / ``batchsavefile``: write store files, optionally letterboxed.

Content comes inline (base64) or from an http(s) URL. Destinations are
relative to the store base directory and may not escape it.
"""
from __future__ import annotations

import base64
import binascii
import os
import re
import tempfile
from typing import Any, Callable, Dict, Optional

import requests

from cartbridge import config as app_config
from cartbridge.services.actions.base import WIRE_JSON, Action
from cartbridge.services.actions.query import to_int
from cartbridge.services.context import RequestContext
from cartbridge.errors import FileError
from cartbridge.services.http_client import DEFAULT_TIMEOUT, DOWNLOAD_HEADERS, new_session
from cartbridge.services.images import RESULT_OK, scale_in_place
from cartbridge.utils.logging import get_logger
from cartbridge.utils.params import as_list

LOG = get_logger("actions.savefile")

ALLOWED_EXTENSIONS = frozenset("""
3g2 3gp 7z aac accdb accde accdr accdt ace adt adts afa aif aifc aiff alz amv apk arc arj ark asf avi
b1 b6z ba bh bmp cab car cda cdx cfs cpt csv dar dd dgc dif dmg doc docm docx dot dotx drc ear eml eps
f4a f4b f4p f4v flv gca genozip gifv ha hki ice iso jar kgb lha lzh lzx m2ts m2v m4a m4p m4v mid midi
mkv mng mov mp2 mp3 mp4 mpe mpeg mpg mpv mts mxf nsv ogg ogv pak partimg pdf pea phar pim pit pot potm
potx ppam pps ppsm ppsx ppt pptm pptx psd pst pub qda qt rar rk rm rmvb roq rtf s7z sda sea sen sfx shk
sit sitx sldm sldx sqx svi tar bz2 gz lz xz zst tbz2 tgz tif tiff tlz tmp ts txt txz uca uha viv vob vsd
vsdm vsdx vss vssm vst vstm vstx war wav wbk webm wim wks wma wmd wms wmv wmz wp5 wpd xar xla xlam xlm
xls xlsm xlsx xlt xltm xltx xp3 xps yuv yz1 zip zipx zoo zpaq zz png jpeg jpg gif
""".split()) | {""}

INVALID_EXTENSION = "ERROR_INVALID_FILE_EXTENSION"
SAVE_FAILED = "[BRIDGE ERROR] File save failed!"
DIR_FAILED = "[BRIDGE ERROR] Directory creation failed!"

_EXTENSION_RE = re.compile(r"\.\w+$")
_REMOTE_RE = re.compile(r"^https?://", re.IGNORECASE)


def file_extension(destination: str) -> str:
    match = _EXTENSION_RE.search(destination or "")
    return match.group(0).replace(".", "") if match else ""


class FileSaver:
    """Writes one file below ``base_dir``; every outcome is a wire string."""

    def __init__(
        self,
        base_dir: Optional[str] = None,
        *,
        http_session: Callable[[], requests.Session] = new_session,
    ) -> None:
        self.base_dir = os.path.abspath(base_dir or app_config.store_base_dir())
        self._http_session = http_session

    def resolve(self, destination: str) -> str:
        target = os.path.abspath(os.path.join(self.base_dir, destination.lstrip("/\\")))
        if os.path.commonpath([self.base_dir, target]) != self.base_dir or target == self.base_dir:
            raise FileError(SAVE_FAILED)
        return target

    def _ensure_dir(self, path: str) -> None:
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
        except OSError as exc:
            LOG.warning("directory creation failed path=%s err=%s", path, exc)
            raise FileError(DIR_FAILED) from exc

    def _write_atomic(self, path: str, chunks: Any) -> None:
        tmp_path = None
        try:
            tmp_fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix=".bridge-", suffix=".part")
            with os.fdopen(tmp_fd, "wb") as fh:
                for chunk in chunks:
                    if chunk:
                        fh.write(chunk)
            os.replace(tmp_path, path)
        except OSError as exc:
            LOG.warning("file write failed path=%s err=%s", path, exc)
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
            raise FileError(SAVE_FAILED) from exc

    def _save_inline(self, source: str, path: str) -> None:
        self._ensure_dir(path)
        try:
            body = base64.b64decode(source.replace(" ", "+"), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise FileError(SAVE_FAILED) from exc
        self._write_atomic(path, [body])

    def _save_remote(self, source: str, path: str) -> None:
        self._ensure_dir(path)
        url = source.replace(" ", "%20")
        try:
            resp = self._http_session().get(url, headers=DOWNLOAD_HEADERS, timeout=DEFAULT_TIMEOUT, stream=True)
        except requests.RequestException as exc:
            LOG.info("download failed url=%s err=%s", url, exc)
            raise FileError("[BRIDGE ERROR] Bad response received from source, HTTP code 0!") from exc
        with resp:
            if resp.status_code != 200:
                raise FileError(
                    f"[BRIDGE ERROR] Bad response received from source, HTTP code {resp.status_code}!"
                )
            self._write_atomic(path, resp.iter_content(chunk_size=65536))

    def save(self, source: str, destination: str, width: int = 0, height: int = 0) -> str:
        source = str(source or "")
        destination = str(destination or "")
        if file_extension(destination) not in ALLOWED_EXTENSIONS:
            return INVALID_EXTENSION
        try:
            path = self.resolve(destination)
            if _REMOTE_RE.match(source):
                self._save_remote(source, path)
            else:
                self._save_inline(source, path)
        except FileError as exc:
            return str(exc)
        LOG.debug("file saved dst=%s", destination)
        if width and height:
            return scale_in_place(path, width, height)
        return RESULT_OK


class SaveFileAction(Action):
    name = "savefile"
    needs_link = False

    def execute(self, ctx: RequestContext) -> Any:
        saver = FileSaver(http_session=ctx.services.http_session)
        return saver.save(
            ctx.param("src", ""),
            ctx.param("dst", ""),
            to_int(ctx.param("width")),
            to_int(ctx.param("height")),
        )


class BatchSaveFileAction(Action):
    name = "batchsavefile"
    needs_link = False
    wire = WIRE_JSON

    def execute(self, ctx: RequestContext) -> Any:
        saver = FileSaver(http_session=ctx.services.http_session)
        result: Dict[str, str] = {}
        for info in as_list(ctx.param("files")):
            if not isinstance(info, dict):
                continue
            result[str(info.get("id"))] = saver.save(
                info.get("source", ""),
                info.get("target", ""),
                to_int(info.get("width")),
                to_int(info.get("height")),
            )
        return result


__all__ = [
    "ALLOWED_EXTENSIONS",
    "INVALID_EXTENSION",
    "file_extension",
    "FileSaver",
    "SaveFileAction",
    "BatchSaveFileAction",
]
