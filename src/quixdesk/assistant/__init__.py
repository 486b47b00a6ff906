"""
Assistant Module
================

QuixkyBot: short support answers from the LLM, with an off-topic
guard, plus text-to-speech playback of replies.
"""
