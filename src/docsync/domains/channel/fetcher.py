# Copyright 2021-present StarRocks, Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""ChannelFetcher: one markdown file per video plus a videos.json index"""

import json
import posixpath
import re
import unicodedata
from datetime import datetime, timezone
from string import Template
from typing import Callable, List, Optional

from loguru import logger

from docsync.core.fetcher import BaseFetcher, FetchOutcome
from docsync.core.protocols import Workspace
from docsync.domains.channel.client import ChannelClient, ChannelItem
from docsync.errors import SourceSyncError
from docsync.models import ChannelSource, SOURCE_TYPE_CHANNEL


INDEX_FILE = 'videos.json'

VIDEO_TEMPLATE = Template("""---
title: "$escaped_title"
description: "$escaped_description"
videoId: "$video_id"
publishedAt: "$published_at"
url: "https://youtube.com/watch?v=$video_id"
hasTranscript: $has_transcript
---

# $title

> Published on $published_date

## Description

$description

## Watch on YouTube

[Watch this video](https://youtube.com/watch?v=$video_id)

$transcript_section
""")


def slugify(text: str, max_length: int = 50) -> str:
    """Lower-case ASCII slug: 'Nuxt 4: What is new?' -> 'nuxt-4-what-is-new'"""
    text = unicodedata.normalize('NFD', text.lower())
    text = ''.join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r'[^a-z0-9]+', '-', text).strip('-')
    return text[:max_length]


def _format_date(published_at: str) -> str:
    try:
        moment = datetime.fromisoformat(published_at.replace('Z', '+00:00'))
    except ValueError:
        return published_at
    return f"{moment.strftime('%B')} {moment.day}, {moment.year}"


def render_video_markdown(item: ChannelItem, transcript: Optional[str]) -> str:
    escaped_description = item.description.replace('"', '\\"').replace('\n', ' ')[:200]
    if transcript:
        transcript_section = f"## Transcript\n\n{transcript}"
    else:
        transcript_section = '> No transcript available for this video'
    return VIDEO_TEMPLATE.substitute(
        escaped_title=item.title.replace('"', '\\"'),
        escaped_description=escaped_description,
        video_id=item.id,
        published_at=item.published_at,
        has_transcript='true' if transcript else 'false',
        title=item.title,
        published_date=_format_date(item.published_at),
        description=item.description,
        transcript_section=transcript_section,
    )


class ChannelFetcher(BaseFetcher):
    """
    Sync a video channel into `<docs_root>/<output_folder>`.

    Item-level failures are logged and skipped; a missing transcript only
    drops the transcript section. file_count includes the index file.
    """

    source_types = (SOURCE_TYPE_CHANNEL,)

    def __init__(self, client_factory: Optional[Callable[[], Optional[ChannelClient]]] = None):
        """
        Args:
            client_factory: Returns a ChannelClient, or None when no API key is configured
        """
        super().__init__()
        self.client_factory = client_factory or (lambda: None)

    def _fetch(self, source: ChannelSource, workspace: Workspace, docs_root: str) -> FetchOutcome:
        client = self.client_factory()
        if client is None:
            raise SourceSyncError("Channel API key not configured")

        logger.info(f"[{source.id}] listing channel {source.label} ({source.channel_id})")
        items = client.list_items(source.channel_id, source.max_items)
        logger.info(f"[{source.id}] found {len(items)} videos to sync")
        if not items:
            return FetchOutcome(file_count=0)

        target = self.output_dir(docs_root, source.output_folder)
        workspace.mkdir(target)

        index: List[dict] = []
        for item in items:
            try:
                transcript = client.fetch_transcript(item.id)
                filename = f"{item.id}-{slugify(item.title)}.md"
                workspace.write_file(
                    posixpath.join(target, filename),
                    render_video_markdown(item, transcript).encode('utf-8'),
                )
                index.append({
                    'id': item.id,
                    'title': item.title,
                    'publishedAt': item.published_at,
                    'file': filename,
                    'hasTranscript': bool(transcript),
                })
            except Exception as e:
                logger.warning(f"[{source.id}] failed to sync video {item.id}: {e}")

        index_data = {
            'lastSync': datetime.now(timezone.utc).isoformat(),
            'totalVideos': len(index),
            'channelId': source.channel_id,
            'handle': source.handle,
            'videos': index,
        }
        workspace.write_file(
            posixpath.join(target, INDEX_FILE),
            json.dumps(index_data, indent=2, ensure_ascii=False).encode('utf-8'),
        )

        logger.info(f"[{source.id}] channel sync completed: {len(index)}/{len(items)} videos")
        return FetchOutcome(file_count=len(index) + 1)
