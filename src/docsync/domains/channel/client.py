"""Video channel provider client: newest-first listing and transcripts"""

import html
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import requests
from loguru import logger


YOUTUBE_API_URL = 'https://www.googleapis.com/youtube/v3'
TIMEDTEXT_URL = 'https://video.google.com/timedtext'

# provider limit per listing page
MAX_PAGE_SIZE = 50


@dataclass
class ChannelItem:
    id: str
    title: str
    description: str = ''
    published_at: str = ''
    thumbnail_url: str = ''


class ChannelClient:
    """
    YouTube Data API v3 client.

    Args:
        api_key: API key of the Data API
        api_url: Base URL (overridable for tests and proxies)
        transcript_url: Timed-text endpoint used for transcripts
        languages: Transcript languages tried in order
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = YOUTUBE_API_URL,
        transcript_url: str = TIMEDTEXT_URL,
        languages: tuple = ('en',),
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip('/')
        self.transcript_url = transcript_url
        self.languages = languages
        self.timeout = timeout
        self.session = session or requests.Session()

    def list_items(self, channel_id: str, max_items: int) -> List[ChannelItem]:
        """
        List the most recent videos of a channel, newest first.

        Raises:
            requests.exceptions.RequestException: If a listing page fails
        """
        items: List[ChannelItem] = []
        page_token: Optional[str] = None

        while len(items) < max_items:
            params = {
                'part': 'snippet',
                'channelId': channel_id,
                'maxResults': min(MAX_PAGE_SIZE, max_items - len(items)),
                'order': 'date',
                'type': 'video',
                'key': self.api_key,
            }
            if page_token:
                params['pageToken'] = page_token

            response = self.session.get(f"{self.api_url}/search", params=params, timeout=self.timeout)
            if not response.ok:
                logger.error(f"Failed to list videos of channel {channel_id}: HTTP {response.status_code}")
                response.raise_for_status()
            data = response.json()

            for entry in data.get('items', []):
                video_id = (entry.get('id') or {}).get('videoId')
                if not video_id:
                    continue
                snippet = entry.get('snippet') or {}
                items.append(ChannelItem(
                    id=video_id,
                    title=snippet.get('title') or 'Untitled',
                    description=snippet.get('description') or '',
                    published_at=snippet.get('publishedAt') or datetime.now(timezone.utc).isoformat(),
                    thumbnail_url=((snippet.get('thumbnails') or {}).get('high') or {}).get('url', ''),
                ))

            page_token = data.get('nextPageToken')
            if not page_token:
                break

        return items[:max_items]

    def fetch_transcript(self, video_id: str) -> Optional[str]:
        """
        Best-effort transcript of a video.

        Returns:
            Whitespace-normalized transcript text, or None when unavailable
        """
        for lang in self.languages:
            try:
                response = self.session.get(
                    self.transcript_url, params={'lang': lang, 'v': video_id}, timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                logger.warning(f"Failed to fetch transcript for {video_id}: {e}")
                return None
            if not response.ok or not response.text.strip():
                continue

            try:
                root = ET.fromstring(response.text)
            except ET.ParseError as e:
                logger.warning(f"Unreadable transcript for {video_id}: {e}")
                continue

            text = ' '.join(html.unescape(node.text or '') for node in root.iter('text'))
            text = re.sub(r'\s+', ' ', text).strip()
            if text:
                return text

        logger.warning(f"No transcript found for video {video_id}")
        return None
