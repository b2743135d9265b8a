from shared.prompts.templates import PromptTemplate

__all__ = ["PromptTemplate"]
