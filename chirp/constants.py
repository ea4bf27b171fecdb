VERSION = '1.0.0'

DATETIME_MS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

POST_TYPE_POST = 'post'
POST_TYPE_REPLY = 'reply'

ENGAGEMENT_LIKE = 'like'
ENGAGEMENT_RESHARE = 'reshare'
ENGAGEMENT_KINDS = (ENGAGEMENT_LIKE, ENGAGEMENT_RESHARE)

ENGAGEMENT_ADDED = 'added'
ENGAGEMENT_REMOVED = 'removed'

# realtime events
EVENT_NEW_POST = 'newPost'
EVENT_NEW_REPLY = 'newReply'
EVENT_ENGAGEMENT_UPDATE = 'engagementUpdate'
EVENT_MEMBER_COUNT = 'memberCount'
EVENT_POST_DELETED = 'postDeleted'
EVENT_AUTHENTICATED = 'authenticated'
EVENT_ERROR = 'error'
EVENT_HEARTBEAT = 'heartbeat'

# error codes returned alongside human readable messages
ERR_VALIDATION = 'VALIDATION_FAILED'
ERR_NOT_FOUND = 'NOT_FOUND'
ERR_POST_NOT_FOUND = 'POST_NOT_FOUND'
ERR_USER_NOT_FOUND = 'USER_NOT_FOUND'
ERR_NICKNAME_EXISTS = 'NICKNAME_EXISTS'
ERR_DUPLICATE_POST = 'DUPLICATE_POST'
ERR_ENGAGEMENT_EXISTS = 'ENGAGEMENT_EXISTS'
ERR_NOT_OWNER = 'NOT_OWNER'
ERR_ALREADY_AUTHENTICATED = 'ALREADY_AUTHENTICATED'
ERR_RENAME_IN_PROGRESS = 'RENAME_IN_PROGRESS'
ERR_BAD_MESSAGE = 'BAD_MESSAGE'
ERR_STORE_UNAVAILABLE = 'STORE_UNAVAILABLE'
ERR_INTERNAL = 'INTERNAL_ERROR'

# hard ceiling enforced by the posts table CHECK constraint, MAX_POST_LENGTH may only go lower
POST_CONTENT_LIMIT = 280
NICKNAME_LIMIT = 20
