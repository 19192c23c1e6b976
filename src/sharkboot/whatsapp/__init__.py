"""WhatsApp Business numbers and their assistant bindings."""
