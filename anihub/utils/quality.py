from typing import Dict, List, Optional

# ===========================
# Available Resolutions
# ===========================
AVAILABLE_RESOLUTIONS = [
    "360p",
    "480p",
    "720p",
    "1080p"
]

# ===========================
# Resolution Extraction
# ===========================
def extract_resolution(label: Optional[str]) -> Optional[str]:
    if not label:
        return None

    for resolution in AVAILABLE_RESOLUTIONS:
        if resolution[:-1] in label:
            return resolution

    return None

# ===========================
# Quality Link Mapping
# ===========================
def map_links_by_quality(links: List[Dict[str, str]]) -> Dict[str, str]:
    quality_map = {}

    for link in links:
        text = link.get("text", "").strip().lower()
        resolution = extract_resolution(text)
        quality_map[resolution or text] = link.get("href", "")

    return quality_map
