"""コンテンツタイプ判定

先頭512バイトのバイトシグネチャからMIMEタイプを判定する。
WHATWG MIME Sniffing 標準 (https://mimesniff.spec.whatwg.org/) に準拠。
"""

import logging
from typing import BinaryIO, Callable, List, Optional

logger = logging.getLogger(__name__)

SNIFF_LEN = 512
DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "
_TAG_TERMINATORS = b" >"
# テキストに含まれない制御文字
_BINARY_BYTES = frozenset(list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20)))

Matcher = Callable[[bytes, int], Optional[str]]


def _skip_ws(data: bytes) -> int:
    i = 0
    while i < len(data) and data[i] in _WHITESPACE:
        i += 1
    return i


def _exact(prefix: bytes, content_type: str) -> Matcher:
    def match(data: bytes, first_non_ws: int) -> Optional[str]:
        return content_type if data.startswith(prefix) else None
    return match


def _masked(mask: bytes, pattern: bytes, content_type: str, skip_ws: bool = False) -> Matcher:
    def match(data: bytes, first_non_ws: int) -> Optional[str]:
        if skip_ws:
            data = data[first_non_ws:]
        if len(data) < len(pattern):
            return None
        for m, p, d in zip(mask, pattern, data):
            if d & m != p:
                return None
        return content_type
    return match


def _html(tag: bytes) -> Matcher:
    """タグ名の大文字小文字を無視し、直後が空白か '>' の場合に一致"""
    def match(data: bytes, first_non_ws: int) -> Optional[str]:
        data = data[first_non_ws:]
        if len(data) < len(tag) + 1:
            return None
        for t, d in zip(tag, data):
            if ord('A') <= t <= ord('Z'):
                d &= 0xDF
            if t != d:
                return None
        if data[len(tag)] not in _TAG_TERMINATORS:
            return None
        return "text/html; charset=utf-8"
    return match


def _mp4(data: bytes, first_non_ws: int) -> Optional[str]:
    # https://mimesniff.spec.whatwg.org/#signature-for-mp4
    if len(data) < 12:
        return None
    box_size = int.from_bytes(data[:4], 'big')
    if len(data) < box_size or box_size % 4 != 0:
        return None
    if data[4:8] != b"ftyp":
        return None
    for st in range(8, box_size, 4):
        if st == 12:
            # バージョン番号はスキップ
            continue
        if data[st:st + 3] == b"mp4":
            return "video/mp4"
    return None


def _text(data: bytes, first_non_ws: int) -> Optional[str]:
    for b in data[first_non_ws:]:
        if b in _BINARY_BYTES:
            return None
    return TEXT_CONTENT_TYPE


_HTML_TAGS = [
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1",
    b"<DIV", b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B",
    b"<BODY", b"<BR", b"<P", b"<!--",
]

# 判定順序に意味があるため、先に一致したものを採用する
_SIGNATURES: List[Matcher] = [_html(tag) for tag in _HTML_TAGS] + [
    _masked(b"\xFF\xFF\xFF\xFF\xFF", b"<?xml", "text/xml; charset=utf-8", skip_ws=True),
    _exact(b"%PDF-", "application/pdf"),
    _exact(b"%!PS-Adobe-", "application/postscript"),

    # BOM
    _masked(b"\xFF\xFF\x00\x00", b"\xFE\xFF\x00\x00", "text/plain; charset=utf-16be"),
    _masked(b"\xFF\xFF\x00\x00", b"\xFF\xFE\x00\x00", "text/plain; charset=utf-16le"),
    _masked(b"\xFF\xFF\xFF", b"\xEF\xBB\xBF", TEXT_CONTENT_TYPE),

    # 画像
    _exact(b"\x00\x00\x01\x00", "image/x-icon"),
    _exact(b"\x00\x00\x02\x00", "image/x-icon"),
    _exact(b"BM", "image/bmp"),
    _exact(b"GIF87a", "image/gif"),
    _exact(b"GIF89a", "image/gif"),
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF\xFF\xFF",
        b"RIFF\x00\x00\x00\x00WEBPVP",
        "image/webp",
    ),
    _exact(b"\x89PNG\x0D\x0A\x1A\x0A", "image/png"),
    _exact(b"\xFF\xD8\xFF", "image/jpeg"),

    # 音声・動画
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF",
        b"FORM\x00\x00\x00\x00AIFF",
        "audio/aiff",
    ),
    _masked(b"\xFF\xFF\xFF", b"ID3", "audio/mpeg"),
    _masked(b"\xFF\xFF\xFF\xFF\xFF", b"OggS\x00", "application/ogg"),
    _masked(b"\xFF\xFF\xFF\xFF\xFF\xFF\xFF\xFF", b"MThd\x00\x00\x00\x06", "audio/midi"),
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF",
        b"RIFF\x00\x00\x00\x00AVI ",
        "video/avi",
    ),
    _masked(
        b"\xFF\xFF\xFF\xFF\x00\x00\x00\x00\xFF\xFF\xFF\xFF",
        b"RIFF\x00\x00\x00\x00WAVE",
        "audio/wave",
    ),
    _mp4,
    _exact(b"\x1A\x45\xDF\xA3", "video/webm"),

    # フォント
    _masked(
        b"\x00" * 34 + b"\xFF\xFF",
        b"\x00" * 34 + b"LP",
        "application/vnd.ms-fontobject",
    ),
    _exact(b"\x00\x01\x00\x00", "font/ttf"),
    _exact(b"OTTO", "font/otf"),
    _exact(b"ttcf", "font/collection"),
    _exact(b"wOFF", "font/woff"),
    _exact(b"wOF2", "font/woff2"),

    # アーカイブ
    _exact(b"\x1F\x8B\x08", "application/x-gzip"),
    _exact(b"PK\x03\x04", "application/zip"),
    _exact(b"Rar!\x1A\x07\x00", "application/x-rar-compressed"),
    _exact(b"Rar!\x1A\x07\x01\x00", "application/x-rar-compressed"),
    _exact(b"\x00\x61\x73\x6D", "application/wasm"),

    _text,
]


def detect_content_type(data: bytes) -> str:
    """
    バイト列からMIMEタイプを判定する

    先頭512バイトのみ参照する。どのシグネチャにも一致しない場合は
    application/octet-stream を返す。空データはテキスト扱い。

    Args:
        data: 判定対象のバイト列

    Returns:
        str: MIMEタイプ（例: 'image/png', 'text/plain; charset=utf-8'）
    """
    data = data[:SNIFF_LEN]
    first_non_ws = _skip_ws(data)
    for matcher in _SIGNATURES:
        content_type = matcher(data, first_non_ws)
        if content_type is not None:
            return content_type
    return DEFAULT_CONTENT_TYPE


def detect_stream_content_type(stream: BinaryIO) -> str:
    """
    ストリーム先頭を読んでMIMEタイプを判定し、先頭へ巻き戻す

    Returns:
        str: MIMEタイプ

    Raises:
        OSError: 読み込み・シークに失敗した場合
    """
    head = stream.read(SNIFF_LEN) or b''
    stream.seek(0)
    return detect_content_type(head)
