"""Model providers: LLM execution and the model catalogue."""
