"""SharkBoot: multi-tenant backend for OpenAI assistants served over WhatsApp."""

__version__ = "0.1.0"
