"""
Tests for the operations shared by the API, CLI and tasks
"""
from unittest.mock import patch

import pytest

from chirp.constants import EVENT_NEW_POST, EVENT_NEW_REPLY, EVENT_ENGAGEMENT_UPDATE, EVENT_POST_DELETED, \
    ERR_NICKNAME_EXISTS, ERR_DUPLICATE_POST, ERR_RENAME_IN_PROGRESS
from chirp.exceptions import ValidationError, NotFoundError, ConflictError, DuplicatePostError, \
    AuthorizationError
from chirp.shared import create_post, register_user, rename_user, toggle_engagement, delete_post, list_posts, \
    list_replies, list_mentions, get_user, touch_user, verify_device, site_stats, search_hashtag, \
    trending_hashtags
from chirp.utils import get_content, get_mention_index, get_propagator


@pytest.fixture
def listener(distributor, drain):
    """An authenticated realtime session, with its join messages already drained"""
    session = distributor.connect()
    distributor.authenticate(session.handle, 'watcher', 'watcher')
    drain(session)
    return session


class TestRegistration:
    """Device-identified users"""

    def test_register_new_user(self, app):
        user, created = register_user('device-1', 'alice')
        assert created is True
        assert user['nickname'] == 'alice'

    def test_register_again_is_not_a_new_user(self, app):
        register_user('device-1', 'alice')
        user, created = register_user('device-1', 'alice')
        assert created is False
        assert user['id'] == 'device-1'

    def test_nickname_taken_by_someone_else(self, app):
        register_user('device-1', 'alice')
        with pytest.raises(ConflictError) as excinfo:
            register_user('device-2', 'alice')
        assert excinfo.value.code == ERR_NICKNAME_EXISTS

    def test_register_with_new_name_renames(self, app):
        register_user('device-1', 'alice')
        create_post('device-1', 'alice', 'hi @alice')
        user, created = register_user('device-1', 'alicia')
        assert created is False
        assert user['nickname'] == 'alicia'
        assert list_posts()[0]['content'] == 'hi @alicia'

    @pytest.mark.parametrize('nickname', ['', '   ', 'has space', 'a' * 21, 'semi;colon', None])
    def test_invalid_nicknames(self, app, nickname):
        with pytest.raises(ValidationError):
            register_user('device-1', nickname)

    def test_kana_and_kanji_nicknames(self, app):
        user, _ = register_user('device-1', 'やまだ太郎')
        assert user['nickname'] == 'やまだ太郎'

    def test_touch_and_verify(self, app):
        assert verify_device('device-1') is None
        register_user('device-1', 'alice')
        assert verify_device('device-1')['nickname'] == 'alice'
        assert touch_user('device-1')['id'] == 'device-1'
        with pytest.raises(NotFoundError):
            touch_user('device-2')
        with pytest.raises(NotFoundError):
            get_user('device-2')


class TestRename:
    """Nickname changes"""

    def test_rename_rewrites_mentions(self, app):
        register_user('u1', 'alice')
        create_post('u2', 'bob', 'hello @alice')
        create_post('u3', 'carol', '@alice2 hi')

        result = rename_user('u1', 'alicia')
        assert result.posts_updated == 1
        contents = sorted(post['content'] for post in list_posts())
        assert contents == ['@alice2 hi', 'hello @alicia']
        assert len(get_mention_index().posts_mentioning('alicia')) == 1
        assert get_user('u1')['nickname'] == 'alicia'

    def test_rename_to_taken_name(self, app):
        register_user('u1', 'alice')
        register_user('u2', 'bob')
        with pytest.raises(ConflictError):
            rename_user('u1', 'bob')
        assert get_user('u1')['nickname'] == 'alice'

    def test_rename_unknown_user(self, app):
        with pytest.raises(NotFoundError):
            rename_user('ghost', 'casper')

    def test_rename_to_same_name(self, app):
        register_user('u1', 'alice')
        assert rename_user('u1', 'alice').total == 0

    def test_failed_propagation_keeps_old_name(self, app):
        register_user('u1', 'alice')
        create_post('u2', 'bob', 'hello @alice')
        with patch.object(get_mention_index(), 'rewrite_references', side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                rename_user('u1', 'alicia')
        assert get_user('u1')['nickname'] == 'alice'
        assert list_posts()[0]['content'] == 'hello @alice'

    def test_rename_waits_for_another_workers_rename(self, app):
        register_user('u1', 'alice')
        create_post('u2', 'bob', 'hello @alice')
        propagator = get_propagator()
        propagator.lock_wait = 0.1
        other_worker = propagator.redis_client.lock('lock:user:u1', timeout=60, blocking_timeout=0)
        assert other_worker.acquire()
        try:
            with pytest.raises(ConflictError) as excinfo:
                rename_user('u1', 'alicia')
            assert excinfo.value.code == ERR_RENAME_IN_PROGRESS
        finally:
            other_worker.release()
        assert get_user('u1')['nickname'] == 'alice'
        assert list_posts()[0]['content'] == 'hello @alice'
        assert rename_user('u1', 'alicia').posts_updated == 1


class TestCreatePost:
    """Posting and replying"""

    def test_280_characters_accepted(self, app):
        post = create_post('u1', 'alice', 'x' * 280)
        assert len(post['content']) == 280

    def test_281_characters_rejected(self, app):
        with pytest.raises(ValidationError):
            create_post('u1', 'alice', 'x' * 281)
        assert list_posts() == []

    def test_text_is_trimmed(self, app):
        assert create_post('u1', 'alice', '  hi  ')['content'] == 'hi'

    @pytest.mark.parametrize('text', ['', '   ', None, 42])
    def test_empty_or_non_text(self, app, text):
        with pytest.raises(ValidationError):
            create_post('u1', 'alice', text)

    def test_first_post_registers_author(self, app):
        create_post('u1', 'alice', 'hello')
        assert get_user('u1')['nickname'] == 'alice'

    def test_existing_author_posts_under_stored_name(self, app):
        register_user('u1', 'alice')
        post = create_post('u1', 'someone_else', 'hello')
        assert post['author_nickname'] == 'alice'

    def test_mentions_are_indexed(self, app):
        post = create_post('u1', 'alice', 'hey @bob and 山田さん')
        names = [row['mentioned_user'] for row in get_mention_index().mentions_for(post['id'])]
        assert names == ['bob', '山田']

    def test_new_post_is_broadcast_once(self, app, listener, drain):
        post = create_post('u1', 'alice', 'hello world')
        messages = drain(listener)
        assert len(messages) == 1
        assert messages[0]['event'] == EVENT_NEW_POST
        assert messages[0]['data']['id'] == post['id']
        assert messages[0]['data']['content'] == 'hello world'

    def test_every_session_gets_one_copy(self, app, distributor, drain):
        sessions = []
        for user_id in ('watcher1', 'watcher2'):
            session = distributor.connect()
            distributor.authenticate(session.handle, user_id, user_id)
            sessions.append(session)
        for session in sessions:
            drain(session)

        post = create_post('u1', 'alice', 'hello everyone')
        for session in sessions:
            messages = drain(session)
            assert [message['event'] for message in messages] == [EVENT_NEW_POST]
            assert messages[0]['data']['id'] == post['id']

    def test_reply_is_broadcast_with_parent(self, app, listener, drain):
        parent = create_post('u1', 'alice', 'question?')
        drain(listener)
        reply = create_post('u2', 'bob', 'answer', parent_id=parent['id'])
        assert reply['parent_id'] == parent['id']
        messages = drain(listener)
        assert messages[0]['event'] == EVENT_NEW_REPLY
        assert messages[0]['data']['post_id'] == parent['id']
        assert messages[0]['data']['reply']['id'] == reply['id']

    def test_reply_to_missing_post(self, app):
        with pytest.raises(NotFoundError):
            create_post('u1', 'alice', 'answer', parent_id='missing')

    def test_parent_deleted_after_lookup(self, app, listener, drain):
        parent = create_post('u1', 'alice', 'question?')
        stale = get_content().get_post(parent['id'])
        delete_post(parent['id'], 'u1')
        drain(listener)
        content = get_content()
        get_post = content.get_post

        def stale_lookup(post_id, include_deleted=False):
            return stale if post_id == parent['id'] else get_post(post_id, include_deleted=include_deleted)

        with patch.object(content, 'get_post', side_effect=stale_lookup):
            with pytest.raises(NotFoundError):
                create_post('u2', 'bob', 'answer', parent_id=parent['id'])
        assert drain(listener) == []
        assert list_replies(parent['id']) == []
        assert verify_device('u2') is None

    def test_duplicate_inside_window(self, app):
        create_post('u1', 'alice', 'same thing')
        with pytest.raises(DuplicatePostError) as excinfo:
            create_post('u1', 'alice', 'same thing')
        assert excinfo.value.code == ERR_DUPLICATE_POST
        create_post('u2', 'bob', 'same thing')

    def test_duplicate_check_can_be_disabled(self, app):
        app.config['DUPLICATE_POST_WINDOW_SECONDS'] = 0
        create_post('u1', 'alice', 'same thing')
        create_post('u1', 'alice', 'same thing')
        assert len(list_posts()) == 2

    def test_failed_write_is_not_broadcast(self, app, listener, drain):
        with patch.object(get_mention_index(), 'record_mentions', side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                create_post('u1', 'alice', 'hello @bob')
        assert drain(listener) == []
        assert list_posts() == []
        assert verify_device('u1') is None


class TestEngagementAndDeletion:
    """Likes, reshares and removal"""

    def test_toggle(self, app, listener, drain):
        post = create_post('u1', 'alice', 'like me')
        register_user('u2', 'bob')
        drain(listener)

        assert toggle_engagement(post['id'], 'u2', 'like')['action'] == 'added'
        result = toggle_engagement(post['id'], 'u2', 'like')
        assert result['action'] == 'removed'
        assert result['post']['likes_count'] == 0

        updates = drain(listener)
        assert [m['event'] for m in updates] == [EVENT_ENGAGEMENT_UPDATE, EVENT_ENGAGEMENT_UPDATE]
        assert updates[0]['data']['likes_count'] == 1
        assert updates[1]['data']['action'] == 'removed'

    def test_toggle_needs_known_user_and_post(self, app):
        post = create_post('u1', 'alice', 'like me')
        with pytest.raises(NotFoundError):
            toggle_engagement(post['id'], 'stranger', 'like')
        with pytest.raises(NotFoundError):
            toggle_engagement('missing', 'u1', 'like')
        with pytest.raises(ValidationError):
            toggle_engagement(post['id'], 'u1', 'bookmark')

    def test_only_author_may_delete(self, app, listener, drain):
        post = create_post('u1', 'alice', 'mine #tag')
        register_user('u2', 'bob')
        with pytest.raises(AuthorizationError):
            delete_post(post['id'], 'u2')

        drain(listener)
        deleted = delete_post(post['id'], 'u1')
        assert deleted['is_deleted']
        assert drain(listener)[0]['event'] == EVENT_POST_DELETED
        assert list_posts() == []
        assert trending_hashtags() == []
        with pytest.raises(NotFoundError):
            delete_post(post['id'], 'u1')

    def test_replies_outlive_their_parent(self, app):
        parent = create_post('u1', 'alice', 'parent')
        create_post('u2', 'bob', 'child', parent_id=parent['id'])
        delete_post(parent['id'], 'u1')
        assert [r['content'] for r in list_replies(parent['id'])] == ['child']


class TestQueries:
    """Listings"""

    def test_mentions_by_id_or_nickname(self, app):
        register_user('u1', 'alice')
        mention = create_post('u2', 'bob', 'hi @alice')
        assert [p['id'] for p in list_mentions('u1')] == [mention['id']]
        assert [p['id'] for p in list_mentions('alice')] == [mention['id']]
        with pytest.raises(NotFoundError):
            list_mentions('nobody')

    def test_hashtag_search_and_stats(self, app):
        create_post('u1', 'alice', 'I like #Python')
        assert len(search_hashtag('python')) == 1
        assert len(search_hashtag('#PYTHON')) == 1
        with pytest.raises(ValidationError):
            search_hashtag('#')
        stats = site_stats()
        assert stats['posts'] == 1
        assert stats['users'] == 1
        assert stats['popular_hashtags'][0]['tag'] == '#python'

    def test_page_length_is_capped(self, app):
        for number in range(3):
            create_post('u1', 'alice', f'post {number}')
        assert len(list_posts(limit=2)) == 2
        assert len(list_posts(page=2, limit=2)) == 1
