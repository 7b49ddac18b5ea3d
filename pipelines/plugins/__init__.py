"""Hook plugins discovered by HookManager.load_plugins."""
