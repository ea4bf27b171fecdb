from flask import current_app

from chirp.api import user_bp, post_bp, hashtag_bp, site_bp
from chirp.api.schema import *
from chirp.shared import create_post, toggle_engagement, delete_post, get_post, list_posts, list_replies, \
    list_user_posts, list_user_replies, list_mentions, register_user, rename_user, get_user, touch_user, \
    verify_device, site_stats, search_hashtag, trending_hashtags
from chirp.utils import get_store
from chirp.views import post_view, user_view, hashtag_view


def posts_view(rows):
    return {'posts': [post_view(row) for row in rows]}


# User
@user_bp.route('/users/register', methods=['POST'])
@user_bp.doc(summary="Register a device, or update its nickname.")
@user_bp.arguments(RegisterUserRequest)
@user_bp.response(200, RegisterUserResponse)
@user_bp.alt_response(201, schema=RegisterUserResponse)
@user_bp.alt_response(400, schema=DefaultError)
@user_bp.alt_response(409, schema=DefaultError)
def post_v1_user_register(data):
    user, created = register_user(data['user_id'], data['nickname'])
    return {'user': user_view(user), 'created': created}, 201 if created else 200


@user_bp.route('/users/verify', methods=['POST'])
@user_bp.doc(summary="Whether a device id is registered.")
@user_bp.arguments(VerifyDeviceRequest)
@user_bp.response(200, VerifyDeviceResponse)
@user_bp.alt_response(400, schema=DefaultError)
def post_v1_user_verify(data):
    user = verify_device(data['user_id'])
    return {'user_id': data['user_id'], 'exists': user is not None, 'user': user_view(user) if user else None}


@user_bp.route('/users/<user_id>', methods=['GET'])
@user_bp.doc(summary="Get a user.")
@user_bp.response(200, User)
@user_bp.alt_response(404, schema=DefaultError)
def get_v1_user(user_id):
    return user_view(get_user(user_id))


@user_bp.route('/users/<user_id>', methods=['PUT'])
@user_bp.doc(summary="Change a nickname. Existing posts, replies and mentions follow the new name.")
@user_bp.arguments(RenameUserRequest)
@user_bp.response(200, RenameUserResponse)
@user_bp.alt_response(400, schema=DefaultError)
@user_bp.alt_response(404, schema=DefaultError)
@user_bp.alt_response(409, schema=DefaultError)
def put_v1_user(data, user_id):
    result = rename_user(user_id, data['nickname'])
    return {'user': user_view(get_user(user_id)), 'posts_updated': result.posts_updated,
            'replies_updated': result.replies_updated}


@user_bp.route('/users/<user_id>/activity', methods=['POST'])
@user_bp.doc(summary="Record that the user is still around.")
@user_bp.response(200, User)
@user_bp.alt_response(404, schema=DefaultError)
def post_v1_user_activity(user_id):
    return user_view(touch_user(user_id))


@user_bp.route('/users/<user_id>/posts', methods=['GET'])
@user_bp.doc(summary="Posts and replies written by a user, newest first.")
@user_bp.arguments(LimitRequest, location="query")
@user_bp.response(200, PostListResponse)
def get_v1_user_posts(data, user_id):
    return posts_view(list_user_posts(user_id, data.get('limit')))


@user_bp.route('/users/<user_id>/replies', methods=['GET'])
@user_bp.doc(summary="Replies written by a user, with what they replied to.")
@user_bp.arguments(LimitRequest, location="query")
@user_bp.response(200, PostListResponse)
def get_v1_user_replies(data, user_id):
    return posts_view(list_user_replies(user_id, data.get('limit')))


@user_bp.route('/users/<user_ref>/mentions', methods=['GET'])
@user_bp.doc(summary="Posts mentioning a user and replies to their posts. Accepts a user id or a nickname.")
@user_bp.arguments(LimitRequest, location="query")
@user_bp.response(200, PostListResponse)
@user_bp.alt_response(404, schema=DefaultError)
def get_v1_user_mentions(data, user_ref):
    return posts_view(list_mentions(user_ref, data.get('limit')))


# Post
@post_bp.route('/posts', methods=['GET'])
@post_bp.doc(summary="Top-level posts, newest first.")
@post_bp.arguments(PostListRequest, location="query")
@post_bp.response(200, PostListResponse)
def get_v1_post_list(data):
    return posts_view(list_posts(data.get('page'), data.get('limit'), data.get('hashtag')))


@post_bp.route('/posts', methods=['POST'])
@post_bp.doc(summary="Create a post.")
@post_bp.arguments(CreatePostRequest)
@post_bp.response(201, PostResponse)
@post_bp.alt_response(400, schema=DefaultError)
@post_bp.alt_response(429, schema=DefaultError)
def post_v1_post(data):
    post = create_post(data['user_id'], data['nickname'], data['content'])
    return {'post': post_view(post)}


@post_bp.route('/posts/<post_id>', methods=['GET'])
@post_bp.doc(summary="Get a post.")
@post_bp.response(200, PostResponse)
@post_bp.alt_response(404, schema=DefaultError)
def get_v1_post(post_id):
    return {'post': post_view(get_post(post_id))}


@post_bp.route('/posts/<post_id>', methods=['DELETE'])
@post_bp.doc(summary="Delete one of your own posts.")
@post_bp.arguments(DeletePostRequest)
@post_bp.response(200, PostResponse)
@post_bp.alt_response(403, schema=DefaultError)
@post_bp.alt_response(404, schema=DefaultError)
def delete_v1_post(data, post_id):
    return {'post': post_view(delete_post(post_id, data['user_id']))}


@post_bp.route('/posts/<post_id>/replies', methods=['GET'])
@post_bp.doc(summary="Replies to a post, oldest first.")
@post_bp.arguments(LimitRequest, location="query")
@post_bp.response(200, PostListResponse)
@post_bp.alt_response(404, schema=DefaultError)
def get_v1_post_replies(data, post_id):
    return posts_view(list_replies(post_id, data.get('limit')))


@post_bp.route('/posts/<post_id>/replies', methods=['POST'])
@post_bp.doc(summary="Reply to a post.")
@post_bp.arguments(CreatePostRequest)
@post_bp.response(201, PostResponse)
@post_bp.alt_response(400, schema=DefaultError)
@post_bp.alt_response(404, schema=DefaultError)
def post_v1_post_reply(data, post_id):
    reply = create_post(data['user_id'], data['nickname'], data['content'], parent_id=post_id)
    return {'post': post_view(reply)}


@post_bp.route('/posts/<post_id>/engagement', methods=['POST'])
@post_bp.doc(summary="Toggle a like or reshare.")
@post_bp.arguments(EngagementRequest)
@post_bp.response(200, EngagementResponse)
@post_bp.alt_response(404, schema=DefaultError)
def post_v1_post_engagement(data, post_id):
    result = toggle_engagement(post_id, data['user_id'], data['kind'])
    return {'action': result['action'], 'post': post_view(result['post'])}


# Hashtag
@hashtag_bp.route('/hashtags/trending', methods=['GET'])
@hashtag_bp.doc(summary="Most used hashtags.")
@hashtag_bp.arguments(LimitRequest, location="query")
@hashtag_bp.response(200, HashtagListResponse)
def get_v1_hashtags_trending(data):
    return {'hashtags': [hashtag_view(row) for row in trending_hashtags(data.get('limit'))]}


@hashtag_bp.route('/hashtags/<tag>/posts', methods=['GET'])
@hashtag_bp.doc(summary="Posts carrying a hashtag. The leading # is optional.")
@hashtag_bp.arguments(LimitRequest, location="query")
@hashtag_bp.response(200, PostListResponse)
def get_v1_hashtag_posts(data, tag):
    return posts_view(search_hashtag(tag, data.get('limit')))


# Site
@site_bp.route('/stats', methods=['GET'])
@site_bp.doc(summary="Site totals and the most popular hashtags.")
@site_bp.response(200, StatsResponse)
def get_v1_stats():
    stats = site_stats()
    stats['popular_hashtags'] = [hashtag_view(row) for row in stats['popular_hashtags']]
    return stats


@site_bp.route('/health', methods=['GET'])
@site_bp.doc(summary="Health check for monitoring/load balancers.")
@site_bp.response(200, HealthResponse)
@site_bp.alt_response(503, schema=HealthResponse)
def get_v1_health():
    store = get_store()
    try:
        healthy = store.ping()
    except Exception as e:
        current_app.logger.error(f"Health check failed: {e}")
        healthy = False
    result = {'status': 'healthy' if healthy else 'unhealthy', 'store': 'connected' if healthy else 'disconnected',
              'backend': store.name}
    return result, 200 if healthy else 503
