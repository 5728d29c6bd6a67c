"""Pydantic models for structured LLM output.

Wire keys are the camelCase (French) keys the prompts ask for; Python
attributes are snake_case. Every model tolerates drift in the generated JSON:
collection fields that are missing, null or of the wrong shape fall back to
an empty default (``lenient``), or are reported field by field when the
parser validates with ``context={"strict": True}``.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationInfo, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


def _as_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "oui" if value else "non"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return " | ".join(str(_as_text(v)) for v in value if v is not None)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return value


_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


def _as_number(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if not match:
            return 0
        number = match.group().replace(",", ".")
        return float(number) if "." in number else int(number)
    return value


def _as_flag(value: Any) -> Any:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("true", "oui", "yes", "1", "✓", "✅")
    return value


Text = Annotated[str, BeforeValidator(_as_text)]
Number = Annotated[Union[int, float], BeforeValidator(_as_number)]
Flag = Annotated[bool, BeforeValidator(_as_flag)]


def _field_shape(annotation: Any) -> tuple[str | None, Any]:
    """Classify a field annotation: ("list" | "dict" | "model" | "optional_model" | None, item type)."""
    origin = get_origin(annotation)
    if origin in (list, tuple, set):
        args = get_args(annotation)
        return "list", (args[0] if args else Any)
    if origin is dict or annotation is dict:
        return "dict", None
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return "model", annotation
    if origin is Union or type(annotation).__name__ == "UnionType":
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and issubclass(args[0], BaseModel):
            return "optional_model", args[0]
    return None, None


def _is_model(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, BaseModel)


class WireModel(BaseModel):
    """Base for every JSON payload exchanged with the text generator."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")
    # Collection fields filled in after parsing, or only present for some
    # payload variants. Never reported by strict validation.
    strict_exempt: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _normalize_shapes(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict):
            return data
        strict_context = bool(info.context and info.context.get("strict"))
        data = dict(data)

        for name, field in cls.model_fields.items():
            strict = strict_context and name not in cls.strict_exempt
            keys = [k for k in (field.alias, name) if k]
            key = next((k for k in keys if k in data), None)
            value = data.get(key) if key else None
            shape, item_type = _field_shape(field.annotation)

            if shape in ("list", "dict", "model"):
                expected = list if shape == "list" else (dict, BaseModel)
                if isinstance(value, expected):
                    if shape == "list" and _is_model(item_type) and not strict:
                        data[key] = [item for item in value if isinstance(item, (dict, BaseModel))]
                    continue
                if strict and field.default_factory is not None:
                    raise PydanticCustomError(
                        "shape",
                        "field '{field}' is missing or has the wrong shape",
                        {"field": field.alias or name},
                    )
                for k in keys:
                    data.pop(k, None)
            elif shape == "optional_model":
                if value is None or isinstance(value, (dict, BaseModel)):
                    continue
                if strict:
                    raise PydanticCustomError(
                        "shape",
                        "field '{field}' is missing or has the wrong shape",
                        {"field": field.alias or name},
                    )
                for k in keys:
                    data.pop(k, None)
            elif key is not None and value is None and not field.is_required():
                data.pop(key)
        return data


# --- Strategic Analyzer ---


class ContexteBusiness(WireModel):
    type_site: Text = ""
    secteur: Text = ""
    positionnement: Text = ""
    autorite_estimee: Text = Field("", alias="autoritéEstimée")
    budget_infere: Text = Field("", alias="budgetInféré")


class DiagnosticFlash(WireModel):
    angle_attaque: Text = ""
    faiblesse_exploitee: Text = Field("", alias="faiblèsseExploitée")
    levier_croissance: Text = ""
    delai_resultats: Text = Field("", alias="délaiRésultats")


class AvatarClient(WireModel):
    segment: Text = ""
    demographique: Text = ""
    psychographique: Text = ""
    comportemental: Text = ""
    emotions_dominantes: Text = ""


class DouleurPrimaire(WireModel):
    douleur: Text = ""
    intensite: Text = "moyenne"
    frequence: Text = ""
    emotion: Text = ""


class ContentGap(WireModel):
    sujet: Text = ""
    concurrent: Text = ""
    opportunite: Text = ""
    difficulte: Text = "moyenne"


class IntentionRecherche(WireModel):
    type: Text = ""
    pourcentage: Number = 0
    exemples: list[Text] = Field(default_factory=list)


class MicroNiche(WireModel):
    niche: Text = ""
    volume_estime: Text = Field("", alias="volumeEstimé")
    potentiel: Text = ""
    concurrence: Text = ""


class NiveauEEAT(WireModel):
    requis: Text = "moderé"
    justification: Text = ""
    normes: list[Text] = Field(default_factory=list)
    actions_prioritaires: list[Text] = Field(default_factory=list)


class LevierDifferentiation(WireModel):
    super_pouvoir: Text = ""
    angle: Text = ""
    message_unique: Text = ""
    preuves: list[Text] = Field(default_factory=list)


class VocabulaireSectoriel(WireModel):
    termes_metier: list[Text] = Field(default_factory=list)
    termes_clients: list[Text] = Field(default_factory=list)
    entites_google: list[Text] = Field(default_factory=list)


class StrategicAnalysis(WireModel):
    contexte_business: ContexteBusiness = Field(default_factory=ContexteBusiness)
    diagnostic_flash: DiagnosticFlash = Field(default_factory=DiagnosticFlash)
    avatar: AvatarClient = Field(default_factory=AvatarClient)
    douleurs_top5: list[DouleurPrimaire] = Field(default_factory=list)
    niveau_eeat: NiveauEEAT = Field(default_factory=NiveauEEAT, alias="niveauEEAT")
    content_gaps: list[ContentGap] = Field(default_factory=list)
    intentions_recherche: list[IntentionRecherche] = Field(default_factory=list)
    micro_niches: list[MicroNiche] = Field(default_factory=list)
    levier_differentiation: LevierDifferentiation = Field(default_factory=LevierDifferentiation)
    vocabulaire_sectoriel: VocabulaireSectoriel = Field(default_factory=VocabulaireSectoriel)


# --- Cluster Architect ---


class Cluster(WireModel):
    id: Text = ""
    nom: Text = ""
    funnel: Text = ""
    objectif_strategique: Text = ""
    description: Text = ""
    mots_cles: list[Text] = Field(default_factory=list)
    volume_estime: Text = ""
    priorite: Number = 0
    pages_piliers: list[Text] = Field(default_factory=list)
    maillage_vers: list[Text] = Field(default_factory=list)
    maillage_depuis: list[Text] = Field(default_factory=list)


class RoadmapItem(WireModel):
    semaine: Number = 0
    mois: Number = 0
    cluster: Text = ""
    focus: Text = ""
    actions: list[Text] = Field(default_factory=list)
    livrables: list[Text] = Field(default_factory=list)
    kpis: list[Text] = Field(default_factory=list)


class MaillageInterne(WireModel):
    de: Text = ""
    vers: Text = ""
    ancre: Text = ""
    type_de_link: Text = ""
    cluster: Text = ""


class PhaseKpis(WireModel):
    objectif: Text = ""
    kpis: list[Text] = Field(default_factory=list)


class KpisParPhase(WireModel):
    mois1: PhaseKpis = Field(default_factory=PhaseKpis)
    mois2: PhaseKpis = Field(default_factory=PhaseKpis)
    mois3: PhaseKpis = Field(default_factory=PhaseKpis)


class ClusterArchitecture(WireModel):
    schema_visuel: Text = ""
    clusters: list[Cluster] = Field(default_factory=list)
    roadmap90_jours: list[RoadmapItem] = Field(default_factory=list)
    maillage_interne: list[MaillageInterne] = Field(default_factory=list)
    kpis_par_phase: KpisParPhase = Field(default_factory=KpisParPhase)


# --- Content Designer ---


class Carburant(WireModel):
    terme_autoritaire: Text = ""
    entite_google: Text = ""
    lsi: list[Text] = Field(default_factory=list)


class ArticleScore(WireModel):
    volume: Number = 0
    difficulte: Number = 0
    impact: Number = 0
    priorite_globale: Number = 0


class Maillage(WireModel):
    vers: list[Text] = Field(default_factory=list)
    depuis: list[Text] = Field(default_factory=list)


class ImageSuggestion(WireModel):
    type: Text = ""
    category: Text = ""
    style: Text = ""
    description: Text = ""
    generation_prompt: Text = ""
    negative_prompt: Text = ""
    placement: Text = ""
    alt_text: Text = ""


class StructuredAnswer(WireModel):
    question: Text = ""
    answer: Text = ""
    format: Text = "concise"
    word_count: Number = 0


class SGEOptimization(WireModel):
    citability_score: Number = 0
    entity_coverage: list[Text] = Field(default_factory=list)
    structured_answers: list[StructuredAnswer] = Field(default_factory=list)
    ai_overview_potential: Text = "medium"
    optimization_tips: list[Text] = Field(default_factory=list)
    key_facts_extracted: list[Text] = Field(default_factory=list)


class ContentRow(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"maillage", "image_suggestions"})

    cluster: Text = ""
    titre_h1: Text = ""
    angle: Text = ""
    trigger: Text = ""
    carburant: Carburant = Field(default_factory=Carburant)
    paa: Text = ""
    snippet_format: Text = "definition"
    schema_markup: Text = Field("Article", alias="schema")
    appat_sxo: Text = Field("", alias="appatSXO")
    intent: Text = ""
    score: ArticleScore = Field(default_factory=ArticleScore)
    maillage: Maillage = Field(default_factory=Maillage)
    meta_description: Text = ""
    validated: Flag = False
    image_suggestions: list[ImageSuggestion] = Field(default_factory=list)
    sge_optimization: SGEOptimization | None = None


class PublicationPlan(WireModel):
    mois: Number = 0
    focus: Text = ""
    articles: list[Text] = Field(default_factory=list)
    objectif: Text = ""


class ClusterSummary(WireModel):
    cluster: Text = ""
    nombre_articles: Number = 0
    focus_principal: Text = ""
    priorite_moyenne: Number = 0


class ContentDesign(WireModel):
    tableau_contenu: list[ContentRow] = Field(default_factory=list)
    planning_publication: list[PublicationPlan] = Field(default_factory=list)
    resume_par_cluster: list[ClusterSummary] = Field(default_factory=list)


# --- Technical Optimizer ---


class ChecklistItem(WireModel):
    item: Text = ""
    priorite: Text = "moyenne"
    action: Text = ""
    impact: Text = ""


class VitalTarget(WireModel):
    objectif: Text = ""
    checklist: list[ChecklistItem] = Field(default_factory=list)


class CoreWebVitals(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"checklist"})

    lcp: VitalTarget = Field(default_factory=VitalTarget)
    fid: VitalTarget = Field(default_factory=VitalTarget)
    cls: VitalTarget = Field(default_factory=VitalTarget)
    checklist: list[ChecklistItem] = Field(default_factory=list)


class Silo(WireModel):
    nom: Text = ""
    page_pilier: Text = ""
    pages: list[Text] = Field(default_factory=list)
    liens_internes: list[Text] = Field(default_factory=list)


class MaillageSchema(WireModel):
    schema_ascii: Text = Field("", alias="schemaASCII")
    description: Text = ""
    silos: list[Silo] = Field(default_factory=list)
    regles: list[Text] = Field(default_factory=list)


class StrategieIndexation(WireModel):
    frequence_publication: Text = ""
    process_post_publication: list[Text] = Field(default_factory=list)
    regles: list[Text] = Field(default_factory=list)
    pages_a_indexer: list[Text] = Field(default_factory=list)
    pages_a_exclure: list[Text] = Field(default_factory=list)


class JsonLdExample(WireModel):
    titre: Text = ""
    type_schema: Text = ""
    code: Text = ""


class TechnicalOptimization(WireModel):
    type_site_detecte: Text = ""
    core_web_vitals: CoreWebVitals = Field(default_factory=CoreWebVitals)
    maillage_schema: MaillageSchema = Field(default_factory=MaillageSchema)
    robots_txt: Text = ""
    pages_noindex: list[Text] = Field(default_factory=list)
    strategie_indexation: StrategieIndexation = Field(default_factory=StrategieIndexation)
    json_ld_exemples: list[JsonLdExample] = Field(default_factory=list)


# --- Snippet Master ---


class SnippetTemplate(WireModel):
    """One of the three snippet shapes; ``type`` says which fields are meaningful."""

    strict_exempt: ClassVar[frozenset[str]] = frozenset({"items", "colonnes", "lignes"})

    type: Text = "definition"
    reponse: Text = ""
    nombre_mots: Number = 0
    intro: Text = ""
    items: list[Text] = Field(default_factory=list)
    colonnes: list[Text] = Field(default_factory=list)
    lignes: list[list[Text]] = Field(default_factory=list)
    html_optimized: Text = ""


class SnippetParArticle(WireModel):
    article: Text = ""
    cluster: Text = ""
    paa_analysee: Text = ""
    format_choisi: Text = "definition"
    justification_format: Text = ""
    difficulte_position0: Text = Field("moyenne", alias="difficultéPosition0")
    potentiel_voice_search: Flag = False
    template: SnippetTemplate = Field(default_factory=SnippetTemplate)


class OpportunitePosition0(WireModel):
    rang: Number = 0
    article: Text = ""
    question: Text = ""
    format_optimal: Text = ""
    difficulte_estimee: Text = Field("", alias="difficultéEstimée")
    volume_recherche: Text = ""
    concurrent_actuel: Text = ""


class QuestionVoice(WireModel):
    question: Text = ""
    reponse: Text = ""
    article: Text = ""
    intent_vocale: Text = ""


class RepartitionFormats(WireModel):
    definitions: Number = 0
    listes: Number = 0
    tableaux: Number = 0


class SyntheseStrategie(WireModel):
    total_articles: Number = 0
    repartition_formats: RepartitionFormats = Field(default_factory=RepartitionFormats)
    articles_factiles: list[Text] = Field(default_factory=list)
    conseils_prioritaires: list[Text] = Field(default_factory=list)


class SnippetStrategy(WireModel):
    snippets_par_article: list[SnippetParArticle] = Field(default_factory=list)
    opportunites_top5: list[OpportunitePosition0] = Field(default_factory=list)
    questions_voice: list[QuestionVoice] = Field(default_factory=list)
    synthese_strategie: SyntheseStrategie = Field(default_factory=SyntheseStrategie)


# --- Authority Builder ---


class Certification(WireModel):
    nom: Text = ""
    organisme: Text = ""
    pertinence: Text = ""
    url_obtention: Text = ""


class OrganismeReference(WireModel):
    nom: Text = ""
    type: Text = ""
    action_recommandee: Text = ""


class SourceOfficielle(WireModel):
    url: Text = ""
    utilisation: Text = ""
    articles_cibles: list[Text] = Field(default_factory=list)


class ExperienceSignals(WireModel):
    preuves: list[Text] = Field(default_factory=list)
    actions_recommandees: list[Text] = Field(default_factory=list)


class ExpertiseSignals(WireModel):
    certifications: list[Certification] = Field(default_factory=list)


class AuthoritativenessSignals(WireModel):
    organismes_reference: list[OrganismeReference] = Field(default_factory=list)


class TrustSignals(WireModel):
    sources_officielles: list[SourceOfficielle] = Field(default_factory=list)


class SignauxEEAT(WireModel):
    experience: ExperienceSignals = Field(default_factory=ExperienceSignals)
    expertise: ExpertiseSignals = Field(default_factory=ExpertiseSignals)
    authoritativeness: AuthoritativenessSignals = Field(default_factory=AuthoritativenessSignals)
    trustworthiness: TrustSignals = Field(default_factory=TrustSignals)


class FreshnessPlan(WireModel):
    type_article: Text = ""
    frequence_mise_a_jour: Text = ""
    format_date_visible: Text = ""
    sections_a_mettre: list[Text] = Field(default_factory=list)
    indicateurs: list[Text] = Field(default_factory=list)


class ExpertCitation(WireModel):
    nom: Text = ""
    titre: Text = ""
    citation: Text = ""
    source: Text = ""


class EtudeCas(WireModel):
    titre: Text = ""
    resultats_chiffres: Text = ""
    structure: Text = ""


class PreuvesSociales(WireModel):
    experts_a_citer: list[ExpertCitation] = Field(default_factory=list)
    etudes_cas: list[EtudeCas] = Field(default_factory=list)
    template_temoignage: Text = ""


class BacklinkTarget(WireModel):
    site: Text = ""
    url: Text = ""
    da: Number = 0
    type: Text = ""
    approche: Text = ""
    template_prospection: Text = ""
    chances_succes: Text = ""


class NetlinkingWeek(WireModel):
    semaine: Number = 0
    actions: list[Text] = Field(default_factory=list)
    objectif: Text = ""
    cibles: list[Text] = Field(default_factory=list)


class AuthorityStrategy(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"certifications", "organismes_reference", "sources_officielles"})

    signaux_eeat: SignauxEEAT = Field(default_factory=SignauxEEAT, alias="signauxEEAT")
    certifications: list[Certification] = Field(default_factory=list)
    organismes_reference: list[OrganismeReference] = Field(default_factory=list)
    sources_officielles: list[SourceOfficielle] = Field(default_factory=list)
    plan_freshness: list[FreshnessPlan] = Field(default_factory=list)
    preuves_sociales: PreuvesSociales = Field(default_factory=PreuvesSociales)
    cibles_backlinks: list[BacklinkTarget] = Field(default_factory=list)
    calendrier_netlinking: list[NetlinkingWeek] = Field(default_factory=list)


# --- Coordinator ---


class Repartition(WireModel):
    bofu: Number = 0
    mofu: Number = 0
    tofu: Number = 0


class PrioriteAbsolue(WireModel):
    cluster: Text = ""
    raison: Text = ""


class ResumeArchitecture(WireModel):
    nombre_clusters: Number = 0
    repartition: Repartition = Field(default_factory=Repartition)
    nombre_articles: Number = 0
    priorite_absolue: PrioriteAbsolue = Field(default_factory=PrioriteAbsolue)


class QuickWin(WireModel):
    rang: Number = 0
    titre: Text = ""
    requete: Text = ""
    description: Text = ""
    cible: Text = ""
    impact: Text = ""
    effort: Text = ""
    delai: Text = ""


class ValidationCroisee(WireModel):
    agent: Text = ""
    statut: Text = ""
    notes: Text = ""


class ChecklistValidation(WireModel):
    tous_livrables: Flag = False
    pas_de_contradiction: Flag = False
    tableaux12_colonnes: Flag = False
    quick_wins_realistes: Flag = False
    maillage_coherent: Flag = False
    schema_markup_adaptes: Flag = False
    roadmap_equilibree: Flag = False


class OptionInteractive(WireModel):
    id: Text = ""
    numero: Text = ""
    label: Text = ""
    description: Text = ""
    icon: Text = ""


def default_options() -> list[OptionInteractive]:
    return [
        OptionInteractive(id="redaction", numero="1️⃣", label="RÉDACTION", description="Choisissez un article à rédiger", icon="📝"),
        OptionInteractive(id="backlinks", numero="2️⃣", label="BACKLINKS", description="Stratégie netlinking complète", icon="🔗"),
        OptionInteractive(id="technique", numero="3️⃣", label="TECHNIQUE", description="Checklist on-page + Schema.org", icon="⚙️"),
        OptionInteractive(id="meta-ctr", numero="4️⃣", label="META & CTR", description="Meta-titles et descriptions", icon="🏷️"),
        OptionInteractive(id="refresh", numero="5️⃣", label="REFRESH", description="Analyser un nouveau business", icon="🔄"),
        OptionInteractive(id="concurrence", numero="6️⃣", label="CONCURRENCE", description="Analyser un concurrent", icon="🔍"),
    ]


class CoordinatorSummary(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"options_interactives"})

    resume_architecture: ResumeArchitecture = Field(default_factory=ResumeArchitecture)
    synthese: Text = ""
    quick_wins: list[QuickWin] = Field(default_factory=list)
    validation_croisee: list[ValidationCroisee] = Field(default_factory=list)
    checklist_validation: ChecklistValidation = Field(default_factory=ChecklistValidation)
    recommandations_finales: list[Text] = Field(default_factory=list)
    conseil_prioritaire: Text = ""
    options_interactives: list[OptionInteractive] = Field(default_factory=default_options)


# --- SGE Optimizer ---


class SGEArticleOptimization(SGEOptimization):
    article_title: Text = ""

    def optimization(self) -> SGEOptimization:
        return SGEOptimization.model_validate(self.model_dump(exclude={"article_title"}))


class SGEOptimizationResult(WireModel):
    articles_optimized: list[SGEArticleOptimization] = Field(default_factory=list)


# --- News Transformer ---


class NewsTransformerInput(WireModel):
    url: Text
    secteur: Text
    expertise: Text
    mot_cle: Text = ""
    type_contenu: list[Text] = Field(default_factory=list)
    audience: Text = ""
    technicite: Text = "intermediaire"
    objectif: Text = ""
    contraintes: Text = ""
    articles_existants: Text = ""


class FeaturedSnippetHint(WireModel):
    format_recommande: Text = "Liste numérotée"
    question_paa: Text = Field("", alias="questionPAA")


class PublicationStrategy(WireModel):
    timing: Text = "Approfondi 3-5 jours"
    longueur_cible: Text = "2000-3000"
    mise_a_jour: Text = "Trimestrielle"


class SEOAngle(WireModel):
    numero: Number = 0
    titre: Text = ""
    type_intention: Text = "Info"
    element_differenciateur: Text = ""
    mot_cle_cible: Text = ""
    difficulte_seo: Text = Field("Moyen", alias="difficulteSEO")
    promesse_unique: Text = ""
    contenu_obligatoire: list[Text] = Field(default_factory=list)
    requetes_lsi: list[Text] = Field(default_factory=list, alias="requetesLSI")
    featured_snippet: FeaturedSnippetHint = Field(default_factory=FeaturedSnippetHint)
    strategie_publication: PublicationStrategy = Field(default_factory=PublicationStrategy)
    potentiel_conversion: Text = ""
    visuels: list[Text] = Field(default_factory=list)


class ActionPriority(WireModel):
    angle: Number = 0
    titre: Text = ""
    raison: Text = ""
    roi: Text = "Moyen"
    temps_production: Text = ""


class ActionPlan(WireModel):
    priorite1: ActionPriority = Field(default_factory=lambda: ActionPriority(angle=1))
    priorite2: ActionPriority = Field(default_factory=lambda: ActionPriority(angle=2))
    priorite3: ActionPriority = Field(default_factory=lambda: ActionPriority(angle=3))


class NewsLinking(WireModel):
    articles_a_lier: list[Text] = Field(default_factory=list)
    architecture: Text = ""


class NonRentable(WireModel):
    raisons: list[Text] = Field(default_factory=list)
    # The prompt's key is spelled this way
    types_a_privilegier: list[Text] = Field(default_factory=list, alias="typesAPrilegier")
    recommandation_alternative: Text = ""


NOT_PROFITABLE = "🔴"


class GroundingSource(WireModel):
    title: Text = ""
    uri: Text = ""


class NewsTransformerResult(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"sources", "search_queries"})

    score_rentabilite: Text = "🟡"
    justification_score: Text = ""
    angles: list[SEOAngle] = Field(default_factory=list)
    plan_action: ActionPlan | None = None
    maillage_interne: NewsLinking | None = None
    quick_win: Text | None = None
    non_rentable: NonRentable | None = None
    # Web results the generation was grounded on, filled in after parsing
    sources: list[GroundingSource] = Field(default_factory=list)
    search_queries: list[Text] = Field(default_factory=list)

    @property
    def is_profitable(self) -> bool:
        return self.score_rentabilite != NOT_PROFITABLE


# --- Content Auditor ---


class PageImage(WireModel):
    src: Text = ""
    alt: Text = ""
    has_alt: Flag = False


class ScrapedPage(WireModel):
    url: Text
    title: Text = ""
    meta_description: Text = ""
    h1: list[Text] = Field(default_factory=list)
    h2: list[Text] = Field(default_factory=list)
    h3: list[Text] = Field(default_factory=list)
    h4: list[Text] = Field(default_factory=list)
    h5: list[Text] = Field(default_factory=list)
    h6: list[Text] = Field(default_factory=list)
    body_text: Text = ""
    word_count: Number = 0
    images: list[PageImage] = Field(default_factory=list)
    internal_links: list[Text] = Field(default_factory=list)
    external_links: list[Text] = Field(default_factory=list)
    canonical_url: Text | None = None
    og_title: Text | None = None
    og_description: Text | None = None
    structured_data: list[dict] = Field(default_factory=list)


class AuditScores(WireModel):
    global_score: Number = Field(50, alias="global")
    structure: Number = 50
    semantique: Number = 50
    technique: Number = 50
    eeat: Number = 50
    lisibilite: Number = 50


class AuditRecommendation(WireModel):
    category: Text = "contenu"
    priority: Text = "moyenne"
    titre: Text = ""
    description: Text = ""
    actionnable: Text = ""
    impact: Text = ""


class AuditContentGap(WireModel):
    sujet: Text = ""
    raison: Text = ""
    potentiel: Text = "moyen"
    mots_cles: list[Text] = Field(default_factory=list)


class ContentAuditResult(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"competiteurs_cibles"})

    url: Text = ""
    scraped_content: ScrapedPage | None = None
    scores: AuditScores = Field(default_factory=AuditScores)
    resume_executif: Text = ""
    points_forts: list[Text] = Field(default_factory=list)
    points_faibles: list[Text] = Field(default_factory=list)
    recommandations: list[AuditRecommendation] = Field(default_factory=list)
    content_gaps: list[AuditContentGap] = Field(default_factory=list)
    suggested_articles: list[ContentRow] = Field(default_factory=list)
    competiteurs_cibles: list[Text] = Field(default_factory=list)


# --- Competitor Analyzer ---


class CompetitorProfile(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"mots_cles_principaux"})

    url: Text = ""
    domain: Text = ""
    da_estime: Number = 0
    titre_h1: Text = ""
    nombre_h2: Number = 0
    word_count: Number = 0
    nombre_liens_internes: Number = 0
    nombre_liens_externes: Number = 0
    mots_cles_principaux: list[Text] = Field(default_factory=list)
    forces: list[Text] = Field(default_factory=list)
    faiblesses: list[Text] = Field(default_factory=list)
    content_gaps_identifies: list[Text] = Field(default_factory=list)
    backlinks_a_recuperer: list[Text] = Field(default_factory=list)
    strategie_surclassement: Text = ""
    scrape_error: Text | None = None


class SyntheseConcurrence(WireModel):
    concurrent_le_plus_fort: Text = ""
    concurrent_le_plus_faible: Text = ""
    niveau_concurrence: Text = "moyenne"
    opportunites_prioritaires: list[Text] = Field(default_factory=list)


class CompetitorAnalysis(WireModel):
    competitors: list[CompetitorProfile] = Field(default_factory=list)
    synthese_globale: SyntheseConcurrence = Field(default_factory=SyntheseConcurrence)
    recommandations: list[Text] = Field(default_factory=list)


# --- SERP Analyzer ---


class SnippetFeature(WireModel):
    present: Flag = False
    format: Text = ""
    source: Text = ""
    content: Text = ""


class SerpFeatures(WireModel):
    featured_snippet: SnippetFeature = Field(default_factory=SnippetFeature)
    people_also_ask: list[Text] = Field(default_factory=list)
    local_pack: Flag = False
    video_carousel: Flag = False
    image_pack: Flag = False
    related_searches: list[Text] = Field(default_factory=list)


class SerpResult(WireModel):
    position: Number = 0
    url: Text = ""
    domain: Text = ""
    page_type: Text = "other"
    content_length: Number = 0
    h2_structure: list[Text] = Field(default_factory=list)
    has_video: Flag = False
    has_images: Flag = False
    last_updated: Text = ""
    estimated_da: Number = Field(0, alias="estimatedDA")


class SearchIntent(WireModel):
    primary: Text = "informational"
    signals: list[Text] = Field(default_factory=list)
    commercial_ratio: Number = 0


class CompetitiveGap(WireModel):
    top3_common_points: list[Text] = Field(default_factory=list)
    whats_missing: list[Text] = Field(default_factory=list)
    differentiating_angle: Text = ""
    difficulty: Text = "medium"


class WinProbability(WireModel):
    score: Number = 0
    time_to_rank: Text = ""
    priority_actions: list[Text] = Field(default_factory=list)


class KeywordSerpAnalysis(WireModel):
    keyword: Text = ""
    search_volume: Text = ""
    intent: SearchIntent = Field(default_factory=SearchIntent)
    top10: list[SerpResult] = Field(default_factory=list)
    serp_features: SerpFeatures = Field(default_factory=SerpFeatures)
    competitive_gap: CompetitiveGap = Field(default_factory=CompetitiveGap)
    win_probability: WinProbability = Field(default_factory=WinProbability)


class ContentLengthBenchmark(WireModel):
    average: Number = 0
    min: Number = 0
    max: Number = 0


class SerpInsights(WireModel):
    easiest_wins: list[Text] = Field(default_factory=list)
    hardest_battles: list[Text] = Field(default_factory=list)
    serp_patterns: list[Text] = Field(default_factory=list)
    content_length_benchmark: ContentLengthBenchmark = Field(default_factory=ContentLengthBenchmark)


class SerpAnalysis(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"sources", "search_queries", "recommendations"})

    serp_analysis: list[KeywordSerpAnalysis] = Field(default_factory=list)
    global_insights: SerpInsights = Field(default_factory=SerpInsights)
    # Derived from the analysis after parsing
    recommendations: list[Text] = Field(default_factory=list)
    sources: list[GroundingSource] = Field(default_factory=list)
    search_queries: list[Text] = Field(default_factory=list)


# --- ROI Predictor ---


class RoiMetrics(WireModel):
    search_volume: Number = 0
    target_position: Number = 0
    estimated_ctr: Number = Field(0, alias="estimatedCTR")
    estimated_traffic: Number = 0
    conversion_rate: Number = 0
    estimated_conversions: Number = 0
    conversion_value: Number = 0
    estimated_revenue: Number = 0


class RoiCosts(WireModel):
    writing_hours: Number = 0
    hourly_rate: Number = 0
    visuals_cost: Number = 0
    total_cost: Number = 0


class RoiValue(WireModel):
    value: Number = 0
    percentage: Text = "0%"
    priority: Text = "a-valider"
    payback_period: Text = ""


class ArticleRoi(WireModel):
    article: Text = ""
    cluster: Text = ""
    intent: Text = ""
    metrics: RoiMetrics = Field(default_factory=RoiMetrics)
    costs: RoiCosts = Field(default_factory=RoiCosts)
    roi: RoiValue = Field(default_factory=RoiValue)


class RoiSummary(WireModel):
    total_articles: Number = 0
    average_roi: Number = Field(0, alias="averageROI")
    top_roi_articles: list[Text] = Field(default_factory=list, alias="topROIArticles")
    low_roi_articles: list[Text] = Field(default_factory=list, alias="lowROIArticles")
    total_estimated_revenue: Number = 0
    total_estimated_cost: Number = 0
    overall_roi: Text = Field("0%", alias="overallROI")


class RoiPredictions(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"roi_predictions", "summary"})

    roi_predictions: list[ArticleRoi] = Field(default_factory=list)
    summary: RoiSummary = Field(default_factory=RoiSummary)
    recommendations: list[Text] = Field(default_factory=list)


# --- Competitive Intelligence ---


class RankingPage(WireModel):
    url: Text = ""
    keyword: Text = ""
    position: Number = 0


class CompetitorFootprint(WireModel):
    estimated_da: Number = Field(0, alias="estimatedDA")
    estimated_traffic: Number = 0
    indexed_pages: Number = 0
    top_pages: list[RankingPage] = Field(default_factory=list)


class ContentMetrics(WireModel):
    average_word_count: Number = 0
    publishing_frequency: Text = ""
    last_update: Text = ""


class IntelCompetitor(WireModel):
    url: Text = ""
    domain: Text = ""
    profile: CompetitorFootprint = Field(default_factory=CompetitorFootprint)
    strengths: list[Text] = Field(default_factory=list)
    weaknesses: list[Text] = Field(default_factory=list)
    content_metrics: ContentMetrics = Field(default_factory=ContentMetrics)


class TheirGap(WireModel):
    topic: Text = ""
    competitors: list[Text] = Field(default_factory=list)
    opportunity: Text = "medium"


class OurAdvantage(WireModel):
    topic: Text = ""
    advantage: Text = ""


class UntappedTopic(WireModel):
    topic: Text = ""
    estimated_volume: Number = 0
    difficulty: Text = "medium"


class IntelContentGaps(WireModel):
    they_have_we_not: list[TheirGap] = Field(default_factory=list)
    we_have_they_not: list[OurAdvantage] = Field(default_factory=list)
    untapped: list[UntappedTopic] = Field(default_factory=list)


class BacklinkOpportunity(WireModel):
    source: Text = ""
    type: Text = "resource"
    competitors_with_link: list[Text] = Field(default_factory=list)
    approach_suggestion: Text = ""


class WinStrategy(WireModel):
    quick_wins: list[Text] = Field(default_factory=list)
    medium_term: list[Text] = Field(default_factory=list)
    long_term: list[Text] = Field(default_factory=list)
    differentiators: list[Text] = Field(default_factory=list)


class CompetitiveIntel(WireModel):
    strict_exempt: ClassVar[frozenset[str]] = frozenset({"sources", "search_queries"})

    competitors: list[IntelCompetitor] = Field(default_factory=list)
    content_gaps: IntelContentGaps = Field(default_factory=IntelContentGaps)
    backlink_opportunities: list[BacklinkOpportunity] = Field(default_factory=list)
    win_strategy: WinStrategy = Field(default_factory=WinStrategy)
    # Derived after parsing
    score: Number = 0
    interpretation: Text = ""
    top_priority: Text = ""
    sources: list[GroundingSource] = Field(default_factory=list)
    search_queries: list[Text] = Field(default_factory=list)
