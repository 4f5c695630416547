"""Basic usage example for Scholarag."""
from scholarag import Config, DocumentAssistant, FeaturePreference

PAGES = [
    (1, "Introduction. This paper studies climate change adaptation in coastal "
        "cities and reviews policy instruments used between 2000 and 2020."),
    (2, "Methods. We surveyed 412 municipal planners about adaptation budgets, "
        "flood defences and managed retreat."),
    (3, "Results. Cities with dedicated adaptation funds reported faster "
        "implementation of flood defences than cities relying on general budgets."),
]


def main():
    # Configuration comes from the environment (.env supported)
    config = Config.from_env()

    print("Initializing Scholarag...")
    assistant = DocumentAssistant.from_config(config)

    # Example 1: Ingest a document
    print("\n=== Example 1: Ingest ===")
    result = assistant.ingest("coastal-study", PAGES)
    print(f"Created {result.chunks_created} chunks "
          f"({result.embedded_chunks} embedded, generation {result.generation})")

    # Example 2: Search without generating
    print("\n=== Example 2: Search ===")
    search = assistant.search("coastal-study", "adaptation funds", top_k=2)
    for scored in search.chunks:
        print(f"  page {scored.page_number}: {scored.combined_score:.3f}")

    # Example 3: Ask a question
    print("\n=== Example 3: Ask ===")
    answer = assistant.ask("demo-user", "coastal-study", "How many planners were surveyed?")
    print(answer.answer)
    for citation in answer.citations:
        print(f"  [Page {citation.page_number}] {citation.excerpt}")
    print(f"Answered by {answer.provider_used}/{answer.model_used}"
          + (" (fallback)" if answer.fell_back else ""))

    # Example 4: Prefer another provider for chat
    print("\n=== Example 4: Preferences ===")
    assistant.preferences.save_preference(FeaturePreference(
        user_id="demo-user",
        feature="chat",
        preferred_provider="gemini",
        preferred_model="gemini-1.5-flash",
    ))
    print("Chat now routes to Gemini, falling back to the system default on failure.")


if __name__ == "__main__":
    main()
