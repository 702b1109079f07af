# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for one part of the domain:
#
#   auth_service     password hashing and bearer tokens
#   user_service     registration, lookup and update of User
#   profile_service  follow graph and viewer-relative profiles
#   article_service  articles, slugs, tags, favorites and the feed
#   comment_service  comments on articles
#
# All service functions accept an AsyncSession as their first argument
# so that the caller controls the transaction boundary (the ``get_db``
# dependency in the router layer, or a test fixture).
