MESSAGE_MAX_LENGTH = 2000
LISTING_TITLE_MIN_LENGTH = 6
LISTING_MAX_PHOTOS = 5

# Paths that must never be used as a post-login redirect target.
LOGIN_NEXT_DISALLOWED = {"/login", "/login/", "/signin", "/signin/", "/auth/callback"}
LOGIN_NEXT_DEFAULT = "/browse/"

# Keys under which the hosted auth tokens live in the server cookie session.
SESSION_ACCESS_TOKEN_KEY = "auth_access_token"
SESSION_REFRESH_TOKEN_KEY = "auth_refresh_token"
