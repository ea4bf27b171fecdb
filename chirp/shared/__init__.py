from chirp.shared.post import create_post, toggle_engagement, delete_post, get_post, list_posts, list_replies, \
    list_user_posts, list_user_replies, list_mentions
from chirp.shared.user import register_user, rename_user, get_user, touch_user, verify_device
from chirp.shared.site import site_stats, search_hashtag, trending_hashtags

__all__ = ['create_post', 'toggle_engagement', 'delete_post', 'get_post', 'list_posts', 'list_replies',
           'list_user_posts', 'list_user_replies', 'list_mentions', 'register_user', 'rename_user', 'get_user',
           'touch_user', 'verify_device', 'site_stats', 'search_hashtag', 'trending_hashtags']
