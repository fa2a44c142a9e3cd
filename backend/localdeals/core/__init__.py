"""Cross-cutting helpers: exceptions, error sanitizing, tokens, text cleanup."""
