# config/app_config.py - Modification pipeline configuration

import os
from types import SimpleNamespace

from dotenv import load_dotenv

load_dotenv()

appConfig = SimpleNamespace(
    intent=SimpleNamespace(
        baseScore=0,
        minScore=-100,
        maxScore=100,
        simpleIncrement=25,
        simpleBonusCap=60,  # several cosmetic words stay cosmetic
        complexDecrement=30,
        manyFilesThreshold=10,
        manyFilesPenalty=100,
        severalFilesThreshold=5,
        severalFilesPenalty=50,
        longRequestWords=50,
        longRequestPenalty=15,
        shortRequestWords=10,
        shortRequestBonus=15,
        followUpBonus=5,
        # score >= threshold -> tier, checked in order
        tiers=[(30, 'trivial'), (0, 'simple'), (-40, 'moderate')],
    ),

    relevance=SimpleNamespace(
        pathTokenWeight=15,
        contentTokenWeight=3,
        explicitMentionBonus=100,
        semanticWeight=25,
        importanceWeight=0.2,
        minTokenLength=3,
        relatedDepth=2,
        fallbackFileCount=3,
        minRankedSlots=2,
        maxFiles={'trivial': 3, 'simple': 5, 'moderate': 10, 'complex': 15},
        entryNames=['index', 'main', 'app', 'layout'],
        entryBonus=50,
    ),

    context=SimpleNamespace(
        maxLines={'trivial': 100, 'simple': 150, 'moderate': 250, 'complex': 400},
        keepRatio=0.4,  # head and tail each
        conversationTurns=10,
        memoryChanges=3,
        memoryIssues=3,
    ),

    generation=SimpleNamespace(
        fastModel=os.getenv('MODIFY_FAST_MODEL', 'anthropic/claude-3-5-haiku-latest'),
        standardModel=os.getenv('MODIFY_STANDARD_MODEL', 'anthropic/claude-sonnet-4-5'),
        profiles={
            'trivial': SimpleNamespace(model='fast', maxTokens=2000, temperature=0.3),
            'simple': SimpleNamespace(model='standard', maxTokens=3000, temperature=0.3),
            'moderate': SimpleNamespace(model='standard', maxTokens=4000, temperature=0.2),
            'complex': SimpleNamespace(model='standard', maxTokens=8000, temperature=0.1),
        },
        directiveGuidance={
            'trivial': '1-3 modifications',
            'simple': '2-5 modifications',
            'moderate': '5-15 modifications',
            'complex': '15+ modifications',
        },
    ),

    validation=SimpleNamespace(
        importFallbacks=['', '.tsx', '.ts', '.jsx', '.js', '.css',
                         '/index.tsx', '/index.ts', '/index.jsx', '/index.js'],
        similarityCutoff=0.8,
    ),

    preview=SimpleNamespace(
        contextLines=3,
        cosmeticProperties=[
            'color', 'background-color', 'background', 'font-size', 'font-weight',
            'padding', 'margin', 'border', 'border-radius', 'opacity', 'width', 'height',
        ],
    ),

    suggestions=SimpleNamespace(
        maxSuggestions=3,
        darkenAmount=0.15,
        focusOutline='2px solid #03A5C0',
        transitionDuration='0.2s ease',
    ),

    cache=SimpleNamespace(
        maxEntries=50,
        ttlSeconds=10 * 60,  # 10 minutes
        tiers=['trivial', 'simple'],
    ),

    memory=SimpleNamespace(
        maxRecentChanges=50,
    ),

    storage=SimpleNamespace(
        dataDir=os.getenv('MODIFY_DATA_DIR'),
        dbName='session_memory.db',
    ),
)
