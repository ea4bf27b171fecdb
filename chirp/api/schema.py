from marshmallow import Schema, fields, validate, EXCLUDE

from chirp.constants import ENGAGEMENT_KINDS, ENGAGEMENT_ADDED, ENGAGEMENT_REMOVED, POST_TYPE_POST, POST_TYPE_REPLY


class DefaultError(Schema):
    code = fields.Integer()
    error = fields.String()
    message = fields.String()
    status = fields.String()
    errors = fields.Dict()


class DefaultSchema(Schema):
    class Meta:
        unknown = EXCLUDE
        datetimeformat = "%Y-%m-%dT%H:%M:%S.%fZ"


# length and character rules are enforced again by the core, these only catch missing/mistyped fields
def user_id_field():
    return fields.String(required=True, validate=validate.Length(min=1, max=128),
                         metadata={"description": "Device derived identifier"})


class User(DefaultSchema):
    id = fields.String(required=True)
    nickname = fields.String(required=True, metadata={"example": "alice"})
    is_active = fields.Boolean(required=True)
    created_at = fields.String(metadata={"example": "2025-06-07T02:29:07.980084Z", "format": "datetime"})
    last_active = fields.String(allow_none=True, metadata={"format": "datetime"})


class RegisterUserRequest(DefaultSchema):
    user_id = user_id_field()
    nickname = fields.String(required=True)


class RegisterUserResponse(DefaultSchema):
    user = fields.Nested(User, required=True)
    created = fields.Boolean(required=True)


class RenameUserRequest(DefaultSchema):
    nickname = fields.String(required=True)


class RenameUserResponse(DefaultSchema):
    user = fields.Nested(User, required=True)
    posts_updated = fields.Integer(required=True)
    replies_updated = fields.Integer(required=True)


class VerifyDeviceRequest(DefaultSchema):
    user_id = user_id_field()


class VerifyDeviceResponse(DefaultSchema):
    user_id = fields.String(required=True)
    exists = fields.Boolean(required=True)
    user = fields.Nested(User, allow_none=True)


class Post(DefaultSchema):
    id = fields.String(required=True)
    author_id = fields.String(required=True)
    author_nickname = fields.String(required=True)
    content = fields.String(required=True)
    parent_id = fields.String(allow_none=True)
    created_at = fields.String(required=True, metadata={"format": "datetime"})
    updated_at = fields.String(allow_none=True, metadata={"format": "datetime"})
    is_deleted = fields.Boolean()
    likes_count = fields.Integer(required=True)
    reshares_count = fields.Integer(required=True)
    replies_count = fields.Integer(required=True)
    type = fields.String(validate=validate.OneOf([POST_TYPE_POST, POST_TYPE_REPLY]))
    parent_content = fields.String(allow_none=True)
    parent_author = fields.String(allow_none=True)


class PostResponse(DefaultSchema):
    post = fields.Nested(Post, required=True)


class PostListResponse(DefaultSchema):
    posts = fields.List(fields.Nested(Post), required=True)


class PostListRequest(DefaultSchema):
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(validate=validate.Range(min=1))
    hashtag = fields.String()


class LimitRequest(DefaultSchema):
    limit = fields.Integer(validate=validate.Range(min=1))


class CreatePostRequest(DefaultSchema):
    user_id = user_id_field()
    nickname = fields.String(required=True)
    content = fields.String(required=True)


class DeletePostRequest(DefaultSchema):
    user_id = user_id_field()


class EngagementRequest(DefaultSchema):
    user_id = user_id_field()
    kind = fields.String(required=True, validate=validate.OneOf(ENGAGEMENT_KINDS))


class EngagementResponse(DefaultSchema):
    action = fields.String(required=True, validate=validate.OneOf([ENGAGEMENT_ADDED, ENGAGEMENT_REMOVED]))
    post = fields.Nested(Post, required=True)


class Hashtag(DefaultSchema):
    tag = fields.String(required=True, metadata={"example": "#python"})
    usage_count = fields.Integer(required=True)
    first_seen = fields.String(metadata={"format": "datetime"})
    last_seen = fields.String(metadata={"format": "datetime"})


class HashtagListResponse(DefaultSchema):
    hashtags = fields.List(fields.Nested(Hashtag), required=True)


class StatsResponse(DefaultSchema):
    users = fields.Integer(required=True)
    posts = fields.Integer(required=True)
    posts_today = fields.Integer(required=True)
    popular_hashtags = fields.List(fields.Nested(Hashtag), required=True)


class HealthResponse(DefaultSchema):
    status = fields.String(required=True)
    store = fields.String(required=True)
    backend = fields.String(required=True)
