from flask import current_app
from sqlalchemy.exc import IntegrityError

from chirp.constants import ERR_NICKNAME_EXISTS, ERR_USER_NOT_FOUND
from chirp.exceptions import ConflictError, NotFoundError
from chirp.mentions import PropagationResult
from chirp.utils import get_content, get_propagator
from chirp.validators import validate_user_id, validate_nickname


def get_user(user_id) -> dict:
    user = get_content().get_user(validate_user_id(user_id))
    if user is None:
        raise NotFoundError('User not found', code=ERR_USER_NOT_FOUND)
    return user


def register_user(user_id, nickname) -> tuple[dict, bool]:
    """Create the user, or bring an existing user's nickname up to date. Returns (user, created)."""
    user_id = validate_user_id(user_id)
    nickname = validate_nickname(nickname, current_app.config['NICKNAME_MAX_LENGTH'])
    content = get_content()

    user = content.get_user(user_id)
    if user is None:
        if content.nickname_taken(nickname):
            raise ConflictError(f'The nickname {nickname} is already in use', code=ERR_NICKNAME_EXISTS)
        if content.insert_user(user_id, nickname):
            current_app.logger.info(f'Registered {nickname} ({user_id})')
            return content.get_user(user_id), True
        # lost a race: either this id was registered meanwhile or someone took the nickname
        user = content.get_user(user_id)
        if user is None:
            raise ConflictError(f'The nickname {nickname} is already in use', code=ERR_NICKNAME_EXISTS)

    if user['nickname'] != nickname:
        rename_user(user_id, nickname)
    else:
        content.touch_user(user_id)
    return content.get_user(user_id), False


def rename_user(user_id, new_nickname) -> PropagationResult:
    """Change a nickname and carry the change into every post, reply and mention record"""
    user_id = validate_user_id(user_id)
    new_nickname = validate_nickname(new_nickname, current_app.config['NICKNAME_MAX_LENGTH'])
    content = get_content()
    propagator = get_propagator()

    with propagator.locked(user_id):
        with propagator.transaction():
            user = content.get_user(user_id)
            if user is None:
                raise NotFoundError('User not found', code=ERR_USER_NOT_FOUND)
            old_nickname = user['nickname']
            if old_nickname == new_nickname:
                return PropagationResult()
            if content.nickname_taken(new_nickname, except_user_id=user_id):
                raise ConflictError(f'The nickname {new_nickname} is already in use', code=ERR_NICKNAME_EXISTS)
            try:
                content.set_nickname(user_id, new_nickname)
            except IntegrityError as e:
                raise ConflictError(f'The nickname {new_nickname} is already in use', code=ERR_NICKNAME_EXISTS) from e
            try:
                return propagator.apply(user_id, old_nickname, new_nickname)
            except Exception:
                current_app.logger.exception(f'Propagating rename of {old_nickname} to {new_nickname} failed')
                raise


def touch_user(user_id) -> dict:
    user_id = validate_user_id(user_id)
    if not get_content().touch_user(user_id):
        raise NotFoundError('User not found', code=ERR_USER_NOT_FOUND)
    return get_content().get_user(user_id)


def verify_device(user_id) -> dict | None:
    """The user registered for this device id, if any"""
    return get_content().get_user(validate_user_id(user_id))
