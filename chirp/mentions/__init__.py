from chirp.mentions.extractor import Mention, MentionAliases, extract, extract_hashtags
from chirp.mentions.index import MentionIndex
from chirp.mentions.propagation import NicknameChangePropagator, PropagationResult

__all__ = ['Mention', 'MentionAliases', 'extract', 'extract_hashtags', 'MentionIndex', 'NicknameChangePropagator',
           'PropagationResult']
