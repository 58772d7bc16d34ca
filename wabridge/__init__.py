# WhatsApp Webhook Bridge
# =======================
# Sends and receives WhatsApp messages by driving WhatsApp Web in Chrome,
# and exposes an HTTP webhook so automation tools can trigger sends.
#
# LAYERS:
# - Infrastructure: WhatsApp Web client, session coordination, settings
# - Web:            FastAPI health + webhook endpoints
# - Examples:       one-shot command line scripts
