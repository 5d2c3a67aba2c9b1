# Stream type reported when upstream omits one.
DEFAULT_SOURCE_TYPE = "hls"

# Only these track kinds are exposed; thumbnail tracks and the like are dropped.
SUBTITLE_TRACK_KINDS = ("captions", "subtitles")

# Markers that identify a string as a playable media URL without decryption.
PLAYLIST_URL_MARKERS = (".m3u8", ".mpd", ".mp4")

SOURCES_PATH = "/embed-1/v3/e-1/getSources"

# Client headers forwarded to the upstream; anything else must be passed as h_<name>.
SUPPORTED_REQUEST_HEADERS = [
    "accept",
    "accept-language",
]
