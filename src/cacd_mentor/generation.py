"""
Remote text-generation client for essay grading, practice questions,
topic explanations, study schedules and the weekly diplomatic dossier.

All calls are single-shot and async. Structured calls raise GenerationError
on failure; explanations and the dossier degrade to fixed fallbacks instead.
Nothing here touches progress or timer state.
"""

import logging
from datetime import date
from typing import Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, ConfigDict, ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from cacd_mentor.config import Settings, get_settings
from cacd_mentor.errors import GenerationError

logger = logging.getLogger(__name__)

EXPLAIN_FALLBACK = "Desculpe, não consegui explicar este assunto agora."
SCHEDULE_FALLBACK = "Desculpe, não consegui gerar o cronograma agora."
DOSSIER_FALLBACK_HEADLINES = (
    "Itamaraty monitora cúpulas regionais",
    "Acordos de cooperação em debate no G20",
    "Brasil amplia presença em fóruns multilaterais",
)

PLAIN_TEXT_RULES = (
    "Não use markdown (asteriscos, hashtags ou sublinhados). "
    "Use apenas hifens para listas e letras MAIÚSCULAS para destacar títulos."
)

GRADER_INSTRUCTION = f"""Você é corretor oficial das provas discursivas do CACD (Instituto Rio Branco).
{PLAIN_TEXT_RULES}
Critérios:
1. Nota de 0,00 a 10,00 com duas casas decimais.
2. Justifique com base no edital: estrutura, profundidade conceitual, autores, datas, tratados e linguagem diplomática.
3. Seja rigoroso: respostas medianas ficam entre 5,50 e 6,50; respostas fracas abaixo de 3,00.
4. Escreva um modelo de resposta nota 10,00 com introdução forte, três ou quatro parágrafos de desenvolvimento e conclusão prospectiva.
5. Proponha um plano de melhoria personalizado com 5 a 7 itens."""

QUESTION_INSTRUCTION = f"Você elabora questões discursivas para o CACD. {PLAIN_TEXT_RULES}"
MENTOR_INSTRUCTION = f"Você é um mentor experiente do CACD. {PLAIN_TEXT_RULES}"
PLANNER_INSTRUCTION = f"Você é um estrategista de estudos para o CACD. {PLAIN_TEXT_RULES}"
DOSSIER_INSTRUCTION = (
    "Você é analista do Itamaraty. Sem markdown. Responda apenas com um objeto JSON "
    "com as chaves \"current\", \"previous\" e \"highlights\" (lista de objetos com "
    "\"text\" e, se houver, \"url\")."
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class CorrectionResult(_CamelModel):
    score: float
    justification: str
    errors: list[str]
    omissions: list[str]
    highlights: list[str]
    bank_grade: float
    approved_grade: float
    model_response: str
    improvement_plan: list[str]


class PracticeQuestion(_CamelModel):
    topic: str
    command: str
    lines: int
    subject: str


class DossierHighlight(_CamelModel):
    text: str
    url: Optional[str] = None


class DossierSource(_CamelModel):
    title: str
    uri: str


class Dossier(_CamelModel):
    current: str = ""
    previous: str = ""
    highlights: list[DossierHighlight]
    sources: list[DossierSource] = []


def fallback_dossier() -> Dossier:
    return Dossier(highlights=[DossierHighlight(text=text) for text in DOSSIER_FALLBACK_HEADLINES])


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return text.strip()


def _grounding_sources(response) -> list[DossierSource]:
    """Web sources cited by a search-grounded response, deduplicated by URI."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    sources = {}
    for chunk in getattr(metadata, "grounding_chunks", None) or []:
        web = getattr(chunk, "web", None)
        if web is not None and web.title and web.uri and web.uri not in sources:
            sources[web.uri] = DossierSource(title=str(web.title), uri=str(web.uri))
    return list(sources.values())


class GenerationClient:
    """Thin async wrapper over the Gemini API."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[genai.Client] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.settings.gemini_api_key:
                raise GenerationError("No Gemini API key configured (set CACD_GEMINI_API_KEY).")
            self._client = genai.Client(api_key=self.settings.gemini_api_key)
        return self._client

    async def _request(self, model: str, contents: str, config: types.GenerateContentConfig):
        client = self.client
        try:
            return await client.aio.models.generate_content(
                model=model, contents=contents, config=config,
            )
        except Exception as e:
            logger.error("Generation request to %s failed: %s", model, e)
            raise GenerationError(f"The mentor is unavailable right now: {e}") from e

    async def _generate(self, model: str, contents: str, config: types.GenerateContentConfig) -> str:
        response = await self._request(model, contents, config)
        return response.text or ""

    async def _generate_json(self, model: str, contents: str, instruction: str, schema: type[BaseModel]):
        text = await self._generate(
            model,
            contents,
            types.GenerateContentConfig(
                system_instruction=instruction,
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )
        try:
            return schema.model_validate_json(text)
        except SchemaError as e:
            logger.error("Unparseable %s from %s: %s", schema.__name__, model, e)
            raise GenerationError(f"The mentor returned an unreadable {schema.__name__}.") from e

    async def score_essay(self, topic: str, essay: str) -> CorrectionResult:
        return await self._generate_json(
            self.settings.grading_model,
            f"Tema: {topic}\n\nResposta do candidato: {essay}",
            GRADER_INSTRUCTION,
            CorrectionResult,
        )

    async def generate_question(self, subject: str) -> PracticeQuestion:
        return await self._generate_json(
            self.settings.explain_model,
            f"Crie uma questão discursiva inédita no padrão CACD sobre: {subject}. "
            "Use comandos que exijam análise histórica ou política aprofundada.",
            QUESTION_INSTRUCTION,
            PracticeQuestion,
        )

    async def explain_topic(self, subject: str, subtopic: str) -> str:
        """Never raises; a failed or empty answer becomes EXPLAIN_FALLBACK."""
        try:
            text = await self._generate(
                self.settings.explain_model,
                f"Explique de forma estratégica para o CACD: {subject} - {subtopic}. "
                "Destaque conceitos-chave e autores.",
                types.GenerateContentConfig(system_instruction=MENTOR_INSTRUCTION),
            )
        except GenerationError as e:
            logger.warning("Explanation of %s unavailable: %s", subtopic, e)
            return EXPLAIN_FALLBACK
        return text or EXPLAIN_FALLBACK

    async def get_weekly_dossier(self, today: Optional[date] = None) -> Dossier:
        """Search-grounded digest of the week's Brazilian diplomacy.

        Highlights without a URL borrow the grounding source at the same
        position. Any failure yields fallback_dossier().
        """
        today = today or date.today()
        try:
            response = await self._request(
                self.settings.explain_model,
                f"Compilado diplomático brasileiro. Data: {today:%d/%m/%Y}. "
                "Pesquise posicionamentos do Brasil em cúpulas, acordos e crises relevantes para o CACD. "
                "Extraia 3 fatos curtíssimos para destaques rápidos e inclua o link da notícia quando houver.",
                types.GenerateContentConfig(
                    system_instruction=DOSSIER_INSTRUCTION,
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                ),
            )
            dossier = Dossier.model_validate_json(_strip_fences(response.text or ""))
        except GenerationError as e:
            logger.info("Weekly dossier unavailable, using fallback headlines: %s", e)
            return fallback_dossier()
        except SchemaError as e:
            logger.warning("Unparseable weekly dossier: %s", e)
            return fallback_dossier()

        dossier.sources = _grounding_sources(response)
        for highlight, source in zip(dossier.highlights, dossier.sources):
            if not highlight.url:
                highlight.url = source.uri
        return dossier

    async def generate_study_schedule(self, days_remaining: int, context: str) -> str:
        text = await self._generate(
            self.settings.explain_model,
            f"Monte um cronograma de estudos para o CACD.\n"
            f"Dias restantes: {days_remaining}.\n"
            f"Progresso atual:\n{context}\n"
            "Priorize tópicos de maior incidência ainda não lidos.",
            types.GenerateContentConfig(system_instruction=PLANNER_INSTRUCTION),
        )
        return text or SCHEDULE_FALLBACK
