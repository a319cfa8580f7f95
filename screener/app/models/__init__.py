from screener.app.models.user import User
from screener.app.models.resume import Resume
from screener.app.models.role import Role
from screener.app.models.skill import Skill, analysis_skill
from screener.app.models.analysis import Analysis
