from autoblog.wordpress.client import WordPressClient, build_auth_header

__all__ = ["WordPressClient", "build_auth_header"]
