"""Client session, questionnaire draft and identity cache routes."""
