"""Template Engine - 쿼리 텍스트 변수 치환"""

from template.main import TemplateEngine
from template.token import TemplateToken, parse_token, tokenize

__all__ = ["TemplateEngine", "TemplateToken", "parse_token", "tokenize"]
