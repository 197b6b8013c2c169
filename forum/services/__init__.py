# Services package.
#
#   comment_service  - comment listings and their display enrichment
#   user_service     - cached user lookups and @username resolution
#   avatar           - avatar URL for a commenter's email
#
# Services are plain classes that receive their repositories and
# collaborators in the constructor; ``forum.main`` builds them once at
# startup and request handlers reach them through FastAPI dependencies.
