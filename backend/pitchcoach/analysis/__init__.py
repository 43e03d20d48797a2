from pitchcoach.analysis.moments import extract_moments
from pitchcoach.analysis.objections import (
    detect_objections,
    get_moment_coaching,
    get_objection_coaching,
    get_personality_guidance,
)
from pitchcoach.analysis.scoring import AnalysisParseError, CallScores, heuristic_scores, parse_llm_json
from pitchcoach.analysis.scripts import ScriptAnalysis, ScriptBrief, fallback_script_analysis, template_script
from pitchcoach.analysis.upload_review import UploadAnalysis, fallback_upload_analysis, validate_upload_analysis

__all__ = [
    'extract_moments',
    'detect_objections',
    'get_moment_coaching',
    'get_objection_coaching',
    'get_personality_guidance',
    'AnalysisParseError',
    'CallScores',
    'heuristic_scores',
    'parse_llm_json',
    'ScriptAnalysis',
    'ScriptBrief',
    'fallback_script_analysis',
    'template_script',
    'UploadAnalysis',
    'fallback_upload_analysis',
    'validate_upload_analysis',
]
