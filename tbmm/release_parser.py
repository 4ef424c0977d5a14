"""
Release name parser

Turns torrent/usenet/file names such as
"The.Girlfriend.2021.1080p.10bit.DS4K.NF.WEBRip.Hindi-Telugu.DDP5.1.x265.HEVC-Ospreay"
into a clean title plus the year, season, episode, resolution and source tags
found in them. Parsing never fails: unrecognised input degrades to a rough title.
"""

import re
from typing import Optional, Pattern, Tuple

from .models import ParsedRelease

# Word edges that treat "_" as a separator, like "." and " "
_L = r"(?<![^\W_])"
_R = r"(?![^\W_])"


def _tokens(*words: str) -> str:
    """Alternation of words that must stand alone between separators"""
    return _L + "(" + "|".join(words) + ")" + _R


EXTENSION_RE = re.compile(r"\.(?:mkv|mp4|m4v|avi|mov|wmv|flv|webm|mpe?g|iso|img|m2ts|vob)$", re.IGNORECASE)
BRACKETED_RE = re.compile(r"\[[^\]]*\]|\{[^}]*\}")
TECH_PARENS_RE = re.compile(
    r"\([^)]*?"
    + _tokens(
        "HEVC", "x264", "x265", r"H\.?264", r"H\.?265", "AVC",
        "10bit", "8bit", "12bit", "HDR", "HDR10",
        "AAC", "AC3", "EAC3", r"DDP?(?:\d\.\d)?", "DTS", "TrueHD", "Atmos", "FLAC",
        "BluRay", "WEBRip", "WEB-DL", "BDRip", "BRRip", "REMUX",
    )
    + r"[^)]*\)",
    re.IGNORECASE,
)
COMPLETE_RE = re.compile(
    _tokens("Complete", r"Full[\s._]*Series", r"Season[\s._]*Pack", r"S\d+[\s._]*Complete"),
    re.IGNORECASE,
)
YEAR_RE = re.compile(_L + r"(19[2-9]\d|20[0-2]\d)(?!bit|p|fps)" + _R, re.IGNORECASE)

# Tried in order; the first pattern that matches decides season and episode
SEASON_EPISODE_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ("SxxEyy", re.compile(r"(?<![^\W\d_])S(?P<season>\d{1,2})\s*E(?P<episode>\d{1,3})(?!\d)", re.IGNORECASE)),
    ("NxM", re.compile(r"(?<!\d)(?<!\d\.)(?P<season>\d{1,2})x(?P<episode>\d{1,3})(?!\d)", re.IGNORECASE)),
    ("season_episode_words", re.compile(
        r"Season[\s._-]*(?P<season>\d{1,2})(?!\d).*?Episode[\s._-]*(?P<episode>\d{1,3})(?!\d)",
        re.IGNORECASE,
    )),
    ("episode", re.compile(_L + r"(?:Episode[\s._-]*|Ep?\.?\s*)(?P<episode>\d{1,3})" + _R, re.IGNORECASE)),
)

RESOLUTION_WORDS = ("2160p", "1080p", "720p", "576p", "480p", "360p", "4K", "8K", "UHD", "FHD", "HD")
RESOLUTION_RE = re.compile(_tokens(*RESOLUTION_WORDS), re.IGNORECASE)

SOURCE_WORDS = ("BluRay", "BRRip", "BDRip", "WEBRip", "WEB-DL", "HDTV", "DVDRip", "REMUX", "Hybrid")
QUALITY_RE = re.compile(_tokens(*(SOURCE_WORDS + ("CAM", "TS", "TC"))), re.IGNORECASE)

# Everything from the earliest match onward is release info, not title.
# On equal positions the earlier category wins.
CUTOFF_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ("resolution", RESOLUTION_RE),
    ("source", re.compile(_tokens(*SOURCE_WORDS), re.IGNORECASE)),
    ("codec", re.compile(
        _tokens("x264", "x265", "HEVC", r"H\.?264", r"H\.?265", "AVC", "VC-1", "XviD"), re.IGNORECASE,
    )),
    ("color", re.compile(
        _tokens("10bit", "8bit", "12bit", "HDR10", "HDR", r"Dolby[\s.]?Vision", "DV"), re.IGNORECASE,
    )),
    ("marker", re.compile(_tokens("DS4K"), re.IGNORECASE)),
    # upper case only: "Max" and "Hbo" are ordinary title words
    ("streaming", re.compile(_tokens("AMZN", "NF", "HULU", "DSNP", "ATVP", "HBO", "MAX", "PCOK", "PMTP"))),
    ("language", re.compile(
        _tokens("MULTI", "DUAL", r"Dual[\s.]Audio", "Hindi", "Telugu", "Tamil", "Korean", "Japanese", "Chinese"),
        re.IGNORECASE,
    )),
)

_SITE_TLDS = "com|org|net|to|me|io|in|se|cc|co|tv|ws|info|xyz|lol"

TITLE_NOISE_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(
        r"^\s*(?:www\.\S+?\.(?:" + _SITE_TLDS + r")|rarbg|yts|eztv|1337x|ettv|tgx)" + _R,
        re.IGNORECASE,
    ),
    re.compile(_tokens("HDTV", "SDTV", "PDTV", "UHD"), re.IGNORECASE),
    re.compile(
        _tokens(
            "REPACK", "PROPER", "EXTENDED", "UNRATED", "UNCUT", "Theatrical",
            r"Director'?s?[\s.]?Cut", "IMAX", "3D", r"Open[\s.]?Matte",
        ),
        re.IGNORECASE,
    ),
    re.compile(_tokens(r"HDR10\+?", "HDR", r"Dolby[\s.]?Vision", "HLG", "SDR", "10bit", "8bit", "12bit"), re.IGNORECASE),
    re.compile(_tokens("Atmos", "TrueHD", r"DTS[-.]HD", "FLAC"), re.IGNORECASE),
    # upper case only, these are also ordinary words
    re.compile(_tokens("REAL", "RETAIL", "DC", "DV", "MA", "OPUS")),
    re.compile(_tokens(r"Part[\s.]?\d+", r"CD\d+", r"Disc[\s.]?\d+"), re.IGNORECASE),
    re.compile(_tokens("RARBG", "YIFY", "YTS", "PSA", "NOGRP"), re.IGNORECASE),
    re.compile(_tokens("Complete", r"Full[\s._]?Series", r"Season[\s._]?Pack"), re.IGNORECASE),
)

_EMPTY_BRACKETS_RE = re.compile(r"\([\s._-]*\)|\[[\s._-]*\]")
_SEPARATOR_RE = re.compile(r"[._-]+")
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"\s*[:\-.,;!?(\[]+$")
_LEADING_PUNCT_RE = re.compile(r"^[:\-.,;!?)\]]+\s*")
_TRAILING_ARTICLE_RE = re.compile(r"\s+(?:The|A|An)$", re.IGNORECASE)
_WORD_START_RE = re.compile(r"(?<![\w'’])\w")

ACRONYM_FIXES: Tuple[Tuple[Pattern, str], ...] = tuple(
    (re.compile(rf"\b{word}\b"), fixed)
    for word, fixed in (("Us", "US"), ("Uk", "UK"), ("Dc", "DC"), ("Hbo", "HBO"), ("Tv", "TV"))
)


def strip_extension(name: str) -> str:
    return EXTENSION_RE.sub("", name)


def remove_bracketed(text: str) -> str:
    """Drop [...] and {...} spans (uploader tags, hashes)"""
    return BRACKETED_RE.sub(" ", text)


def remove_technical_parentheticals(text: str) -> str:
    """Drop (...) spans holding codec/audio/source tags; a plain "(2021)" stays"""
    return TECH_PARENS_RE.sub(" ", text)


def detect_complete(text: str) -> bool:
    return bool(COMPLETE_RE.search(text))


def extract_year(text: str) -> Optional[int]:
    """First plausible year that is not part of a resolution, bit depth or frame rate"""
    match = YEAR_RE.search(text)
    return int(match.group(1)) if match else None


def extract_season_episode(text: str) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    """Return (season, episode, matched text) from the first pattern that matches"""
    for _name, pattern in SEASON_EPISODE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        groups = match.groupdict()
        season = int(groups["season"]) if groups.get("season") else None
        episode = int(groups["episode"]) if groups.get("episode") else None
        return season, episode, match.group(0)
    return None, None, None


def extract_resolution(text: str) -> Optional[str]:
    match = RESOLUTION_RE.search(text)
    return match.group(1).upper() if match else None


def extract_quality(text: str) -> Optional[str]:
    match = QUALITY_RE.search(text)
    return match.group(1) if match else None


def find_title_cutoff(text: str) -> Tuple[int, Optional[str]]:
    """Position where release info starts and the category that marked it"""
    cutoff = len(text)
    category = None
    for name, pattern in CUTOFF_PATTERNS:
        match = pattern.search(text)
        if match and match.start() < cutoff:
            cutoff = match.start()
            category = name
    return cutoff, category


def refine_title(candidate: str, year: Optional[int] = None, episode_text: Optional[str] = None) -> str:
    """Remove extracted fields and leftover tags from a title candidate"""
    title = candidate
    if year is not None:
        title = re.sub(_L + str(year) + _R, " ", title, count=1)
    if episode_text:
        title = title.replace(episode_text, " ", 1)
    for pattern in TITLE_NOISE_PATTERNS:
        title = pattern.sub(" ", title)

    title = _EMPTY_BRACKETS_RE.sub(" ", title)
    title = _SEPARATOR_RE.sub(" ", title)
    title = _WHITESPACE_RE.sub(" ", title).strip()
    title = _TRAILING_PUNCT_RE.sub("", title)
    title = _LEADING_PUNCT_RE.sub("", title)
    title = _TRAILING_ARTICLE_RE.sub("", title)
    return title.strip()


def normalize_title_case(title: str) -> str:
    """Capitalize every word, then repair acronyms the capitalization breaks"""
    title = _WORD_START_RE.sub(lambda m: m.group(0).upper(), title)
    for pattern, fixed in ACRONYM_FIXES:
        title = pattern.sub(fixed, title)
    return title


def parse_release_name(name: str) -> ParsedRelease:
    """Parse a release/file name into a ParsedRelease"""
    cleaned = strip_extension(name or "")
    cleaned = remove_bracketed(cleaned)
    cleaned = remove_technical_parentheticals(cleaned)

    is_complete = detect_complete(cleaned)
    year = extract_year(cleaned)
    season, episode, episode_text = extract_season_episode(cleaned)
    resolution = extract_resolution(cleaned)
    quality = extract_quality(cleaned)

    cutoff, _category = find_title_cutoff(cleaned)
    title = refine_title(cleaned[:cutoff], year, episode_text)
    if not title and cutoff < len(cleaned):
        # nothing before the first tag, e.g. "1080p.BluRay.mkv"
        title = refine_title(cleaned, year, episode_text)
    if not title:
        title = _WHITESPACE_RE.sub(" ", _SEPARATOR_RE.sub(" ", cleaned)).strip()

    return ParsedRelease(
        title=normalize_title_case(title),
        year=year,
        season=season,
        episode=episode,
        resolution=resolution,
        quality=quality,
        is_complete=is_complete,
    )
