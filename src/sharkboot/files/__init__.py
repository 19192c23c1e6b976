"""Knowledge files attached to an assistant's file search."""
