# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - whatsapp/: Selenium-based WhatsApp Web automation and session coordination
# - config/: Environment settings and logging setup
