"""
Tests for carrying a nickname change into existing content
"""
import threading
from unittest.mock import patch

import pytest

from chirp.constants import ERR_RENAME_IN_PROGRESS
from chirp.exceptions import ConflictError, StoreUnavailableError
from chirp.mentions import NicknameChangePropagator, PropagationResult
from chirp.mentions.propagation import references, rewrite


def write(content, mention_index, text, author='u9', nickname='writer', parent_id=None):
    post = content.create_post(author, nickname, text, parent_id=parent_id)
    mention_index.record_mentions(post['id'], text)
    return post


class TestRewriteRules:
    """Which occurrences get rewritten"""

    def test_selection_needs_whitespace_or_end(self):
        assert references('hello @alice', 'alice')
        assert references('@alice hello', 'alice')
        assert not references('@alice, hello', 'alice')
        assert not references('@alice2 hi', 'alice')

    def test_rewrite_checks_trailing_edge_only(self):
        assert rewrite('hello @alice', 'alice', 'bob') == 'hello @bob'
        assert rewrite('@alice, @alice!', 'alice', 'bob') == '@bob, @bob!'
        assert rewrite('@alice2 hi', 'alice', 'bob') == '@alice2 hi'
        assert rewrite('mail x@alice', 'alice', 'bob') == 'mail x@bob'

    def test_regex_characters_in_names_are_literal(self):
        assert rewrite('@a.b @axb', 'a.b', 'c') == '@c @axb'


class TestPropagate:
    """End to end rename over the store"""

    def test_rename_rewrites_body_and_index(self, store, content, mention_index, propagator):
        post = write(content, mention_index, 'hello @alice')
        result = propagator.propagate('u1', 'alice', 'bob')

        assert result == PropagationResult(posts_updated=1, replies_updated=0)
        assert content.get_post(post['id'])['content'] == 'hello @bob'
        assert mention_index.posts_mentioning('bob') == [post['id']]
        assert mention_index.posts_mentioning('alice') == []

    def test_longer_handle_is_untouched(self, content, mention_index, propagator):
        post = write(content, mention_index, '@alice2 hi')
        result = propagator.propagate('u1', 'alice', 'bob')
        assert result.total == 0
        assert content.get_post(post['id'])['content'] == '@alice2 hi'
        assert mention_index.posts_mentioning('alice2') == [post['id']]

    def test_replies_counted_separately(self, content, mention_index, propagator):
        parent = write(content, mention_index, 'top level @alice')
        write(content, mention_index, '@alice agreed', parent_id=parent['id'])
        result = propagator.propagate('u1', 'alice', 'bob')
        assert result.posts_updated == 1
        assert result.replies_updated == 1

    def test_author_name_is_updated(self, content, mention_index, propagator):
        post = write(content, mention_index, 'my first post', author='u1', nickname='alice')
        propagator.propagate('u1', 'alice', 'bob')
        assert content.get_post(post['id'])['author_nickname'] == 'bob'

    def test_deleted_posts_are_left_alone(self, content, mention_index, propagator):
        post = write(content, mention_index, 'bye @alice')
        content.soft_delete_post(post['id'])
        assert propagator.propagate('u1', 'alice', 'bob').total == 0
        assert content.get_post(post['id'], include_deleted=True)['content'] == 'bye @alice'

    def test_like_wildcards_in_name_do_not_widen_selection(self, content, mention_index, propagator):
        post = write(content, mention_index, 'hi @aXb')
        assert propagator.propagate('u1', 'a_b', 'c').total == 0
        assert content.get_post(post['id'])['content'] == 'hi @aXb'

    def test_overlong_result_is_skipped(self, content, mention_index, propagator):
        text = '@al ' + 'x' * 276
        post = write(content, mention_index, text)
        result = propagator.propagate('u1', 'al', 'a_much_longer_name')
        assert result.total == 0
        assert content.get_post(post['id'])['content'] == text
        assert mention_index.posts_mentioning('a_much_longer_name') == [post['id']]

    def test_same_name_does_nothing(self, propagator):
        assert propagator.propagate('u1', 'alice', 'alice') == PropagationResult()

    def test_atomic_failure_rolls_everything_back(self, content, mention_index, propagator):
        post = write(content, mention_index, 'hello @alice')
        with patch.object(mention_index, 'rewrite_references', side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                propagator.propagate('u1', 'alice', 'bob')
        assert content.get_post(post['id'])['content'] == 'hello @alice'

    def test_best_effort_keeps_applied_steps(self, store, content, mention_index, locking_redis):
        propagator = NicknameChangePropagator(store, mention_index, locking_redis, atomic=False)
        post = write(content, mention_index, 'hello @alice')
        with patch.object(mention_index, 'rewrite_references', side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                propagator.propagate('u1', 'alice', 'bob')
        assert content.get_post(post['id'])['content'] == 'hello @bob'
        assert mention_index.posts_mentioning('alice') == [post['id']]



class TestRenameLock:
    """Renames of one user are serialized through a redis lock shared by every process"""

    def test_lock_name_is_per_user(self, propagator, locking_redis):
        with propagator.locked('u1'):
            assert locking_redis.held('lock:user:u1')
            assert not locking_redis.held('lock:user:u2')
        assert not locking_redis.held('lock:user:u1')

    def test_second_worker_is_refused_while_lock_is_held(self, store, mention_index, locking_redis, propagator):
        other_worker = NicknameChangePropagator(store, mention_index, locking_redis, lock_wait=0.1)
        with propagator.locked('u1'):
            with pytest.raises(ConflictError) as excinfo:
                other_worker.propagate('u1', 'alice', 'bob')
        assert excinfo.value.code == ERR_RENAME_IN_PROGRESS

    def test_other_users_are_not_blocked(self, store, mention_index, locking_redis, propagator):
        other_worker = NicknameChangePropagator(store, mention_index, locking_redis, lock_wait=0.1)
        with propagator.locked('u1'):
            with other_worker.locked('u2'):
                assert locking_redis.held('lock:user:u2')

    def test_waiting_worker_goes_ahead_once_lock_is_released(self, content, store, mention_index, locking_redis,
                                                              propagator):
        post = write(content, mention_index, 'hello @alice')
        other_worker = NicknameChangePropagator(store, mention_index, locking_redis, lock_wait=5)
        results = []
        started = threading.Event()

        def rename():
            started.set()
            results.append(other_worker.propagate('u1', 'alice', 'bob'))

        with propagator.locked('u1'):
            thread = threading.Thread(target=rename)
            thread.start()
            started.wait(1)
            assert content.get_post(post['id'])['content'] == 'hello @alice'
        thread.join(5)
        assert results[0].posts_updated == 1
        assert content.get_post(post['id'])['content'] == 'hello @bob'

    def test_lock_is_released_after_error(self, content, mention_index, propagator, locking_redis):
        write(content, mention_index, 'hello @alice')
        with patch.object(mention_index, 'rewrite_references', side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                propagator.propagate('u1', 'alice', 'bob')
        assert not locking_redis.held('lock:user:u1')

    def test_redis_down_is_unavailable(self, propagator, locking_redis):
        locking_redis.down = True
        with pytest.raises(StoreUnavailableError):
            propagator.propagate('u1', 'alice', 'bob')
