def nav_section(request):
    """Provide the current nav section name based on the URL path."""
    path = request.path
    if path == "/":
        return {"nav_section": "home"}
    prefix_map = [
        ("/browse", "browse"),
        ("/listings", "browse"),
        ("/sell", "sell"),
        ("/messages", "messages"),
        ("/account", "account"),
        ("/login", "login"),
    ]
    for prefix, section in prefix_map:
        if path.startswith(prefix):
            return {"nav_section": section}
    return {"nav_section": ""}
