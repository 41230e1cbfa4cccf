"""Payment gateway clients and webhook processing."""
