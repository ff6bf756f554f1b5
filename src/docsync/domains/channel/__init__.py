"""
Channel domain: sync video channels as markdown transcripts
"""

from docsync.domains.channel.client import ChannelClient, ChannelItem
from docsync.domains.channel.fetcher import ChannelFetcher

__all__ = [
    'ChannelClient',
    'ChannelItem',
    'ChannelFetcher',
]
