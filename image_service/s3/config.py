"""
S3 Storage Configuration.
Constants for batched deletes and error classification.
"""

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000

# Error codes grouped by StorageErrorKind
UNAUTHORIZED_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
}
NOT_FOUND_CODES = {"NoSuchBucket", "NoSuchKey", "NotFound", "404"}
CONFLICT_CODES = {
    "PreconditionFailed",
    "ConditionalRequestConflict",
    "BucketAlreadyOwnedByYou",
}
